"""Tests for the async store adapter and engine dialects."""

from pathlib import Path

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from conftest import fetch_rows
from pos_backup.adapters.dialects import (
    PostgresDialect,
    SqliteDialect,
    dialect_for_url,
    quote_identifier,
)
from pos_backup.adapters.engine import StoreAdapter, normalize_url
from pos_backup.backup.errors import ConnectivityError, InvalidFormatError, TransactionFailedError


# ============================================================================
# Test: URL handling
# ============================================================================


class TestUrls:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("sqlite:///pos-data.db", "sqlite+aiosqlite:///pos-data.db"),
            ("sqlite+aiosqlite:///pos-data.db", "sqlite+aiosqlite:///pos-data.db"),
            ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("postgresql+asyncpg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ],
    )
    def test_normalize_url(self, raw: str, expected: str) -> None:
        assert normalize_url(raw) == expected

    def test_dialect_for_url(self) -> None:
        assert isinstance(dialect_for_url("sqlite+aiosqlite:///x.db"), SqliteDialect)
        assert isinstance(dialect_for_url("postgresql+asyncpg://h/db"), PostgresDialect)
        assert isinstance(dialect_for_url("postgres://h/db"), PostgresDialect)

    def test_unsupported_scheme(self) -> None:
        with pytest.raises(ValueError, match="mysql"):
            dialect_for_url("mysql://h/db")

    def test_quote_identifier(self) -> None:
        assert quote_identifier("sale_items") == '"sale_items"'
        assert quote_identifier('we"ird') == '"we""ird"'

    def test_native_temporals(self) -> None:
        assert SqliteDialect.native_temporals is False
        assert PostgresDialect.native_temporals is True


# ============================================================================
# Test: StoreAdapter
# ============================================================================


class TestStoreAdapter:
    async def test_connection_health(self, store: StoreAdapter) -> None:
        assert await store.test_connection() is True

    async def test_unreachable_store(self, tmp_path: Path) -> None:
        adapter = StoreAdapter(f"sqlite:///{tmp_path}/missing/dir/pos.db", poolclass=NullPool)
        try:
            with pytest.raises(ConnectivityError) as exc_info:
                await adapter.test_connection()
        finally:
            await adapter.close()
        assert exc_info.value.status_code == 503
        assert exc_info.value.technical

    async def test_foreign_keys_enforced_on_new_connections(self, store: StoreAdapter) -> None:
        async with store.connect() as conn:
            assert (await conn.exec_driver_sql("PRAGMA foreign_keys")).scalar() == 1

    async def test_transaction_commits(self, store: StoreAdapter, sync_engine: Engine) -> None:
        async with store.transaction() as conn:
            await conn.execute(text("INSERT INTO categories (name) VALUES ('Tea')"))

        assert fetch_rows(sync_engine, "SELECT name FROM categories") == [{"name": "Tea"}]

    async def test_store_error_rolls_back(self, store: StoreAdapter, sync_engine: Engine) -> None:
        with pytest.raises(TransactionFailedError):
            async with store.transaction() as conn:
                await conn.execute(text("INSERT INTO categories (name) VALUES ('Tea')"))
                await conn.execute(text("INSERT INTO no_such_table VALUES (1)"))

        assert fetch_rows(sync_engine, "SELECT name FROM categories") == []

    async def test_backup_error_passes_through(
        self, store: StoreAdapter, sync_engine: Engine
    ) -> None:
        with pytest.raises(InvalidFormatError):
            async with store.transaction() as conn:
                await conn.execute(text("INSERT INTO categories (name) VALUES ('Tea')"))
                raise InvalidFormatError("stop")

        assert fetch_rows(sync_engine, "SELECT name FROM categories") == []

    async def test_constraints_restored_after_transaction(self, store: StoreAdapter) -> None:
        async with store.transaction() as conn:
            await store.dialect.disable_constraints(conn)
            await conn.execute(
                text("INSERT INTO sale_items (sale_id, product_id, quantity, unit_price, subtotal) "
                     "VALUES (99, 99, 1, 1, 1)")
            )

        async with store.connect() as conn:
            assert (await conn.exec_driver_sql("PRAGMA foreign_keys")).scalar() == 1

    async def test_reset_sequences(self, store: StoreAdapter, sync_engine: Engine) -> None:
        async with store.transaction() as conn:
            await conn.execute(text("INSERT INTO categories (id, name) VALUES (40, 'Tea')"))
            await conn.execute(text("DELETE FROM categories"))
            await store.dialect.reset_sequences(conn, ["categories"])
            await conn.execute(text("INSERT INTO categories (name) VALUES ('Coffee')"))

        assert fetch_rows(sync_engine, "SELECT id FROM categories") == [{"id": 1}]
