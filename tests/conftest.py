"""Shared fixtures: a file-backed SQLite store with the shop's core schema."""

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from pos_backup.adapters.engine import StoreAdapter

# Core POS tables as the desktop install creates them
POS_SCHEMA = [
    """CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        password TEXT NOT NULL,
        name TEXT,
        role TEXT NOT NULL DEFAULT 'cashier',
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE suppliers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        phone TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE settings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        key TEXT NOT NULL UNIQUE,
        value TEXT
    )""",
    """CREATE TABLE products (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        sku TEXT NOT NULL UNIQUE,
        price NUMERIC NOT NULL,
        stock_quantity INTEGER NOT NULL DEFAULT 0,
        category_id INTEGER REFERENCES categories(id),
        supplier_id INTEGER REFERENCES suppliers(id),
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE sales (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_number TEXT NOT NULL UNIQUE,
        customer_id INTEGER REFERENCES customers(id),
        user_id INTEGER REFERENCES users(id),
        total NUMERIC NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE sale_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sale_id INTEGER NOT NULL REFERENCES sales(id) ON DELETE CASCADE,
        product_id INTEGER NOT NULL REFERENCES products(id),
        quantity INTEGER NOT NULL,
        unit_price NUMERIC NOT NULL,
        subtotal NUMERIC NOT NULL
    )""",
    """CREATE TABLE purchases (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_number TEXT,
        supplier_id INTEGER REFERENCES suppliers(id),
        total NUMERIC,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE purchase_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        purchase_id INTEGER REFERENCES purchases(id),
        product_id INTEGER REFERENCES products(id),
        quantity INTEGER,
        cost NUMERIC
    )""",
]

# 3 categories, 5 products, 2 sales, 4 line items = 14 records in 4 tables
EXAMPLE_ROWS = [
    "INSERT INTO categories (id, name, created_at) VALUES "
    "(1, 'Beverages', '2024-05-01 09:00:00'), "
    "(2, 'Snacks', '2024-05-01 09:00:00'), "
    "(3, 'Dairy', '2024-05-01 09:00:00')",
    "INSERT INTO products (id, name, sku, price, stock_quantity, category_id, created_at) VALUES "
    "(1, 'Green Tea', 'BEV-001', 120.5, 40, 1, '2024-05-01 09:05:00'), "
    "(2, 'Cola', 'BEV-002', 45, 100, 1, '2024-05-01 09:05:00'), "
    "(3, 'Chips', 'SNK-001', 20, 75, 2, '2024-05-01 09:05:00'), "
    "(4, 'Cookies', 'SNK-002', 35.75, 60, 2, '2024-05-01 09:05:00'), "
    "(5, 'Milk', 'DRY-001', 28, 30, 3, '2024-05-01 09:05:00')",
    "INSERT INTO sales (id, order_number, total, created_at) VALUES "
    "(1, 'POS-1001', 185.5, '2024-05-02 10:00:00'), "
    "(2, 'POS-1002', 83, '2024-05-02 11:30:00')",
    "INSERT INTO sale_items (id, sale_id, product_id, quantity, unit_price, subtotal) VALUES "
    "(1, 1, 1, 1, 120.5, 120.5), "
    "(2, 1, 2, 1, 45, 45), "
    "(3, 1, 3, 1, 20, 20), "
    "(4, 2, 5, 1, 28, 28)",
]


def execute_sql(engine: Engine, statements: list[str]) -> None:
    with engine.begin() as conn:
        for statement in statements:
            conn.execute(text(statement))


def fetch_rows(engine: Engine, sql: str) -> list[dict]:
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(text(sql)).mappings()]


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """SQLite file with the core POS schema and no rows."""
    path = tmp_path / "pos-data.db"
    engine = create_engine(f"sqlite:///{path}", poolclass=NullPool)
    execute_sql(engine, POS_SCHEMA)
    engine.dispose()
    return path


@pytest.fixture
def sync_engine(db_path: Path) -> Iterator[Engine]:
    """Blocking engine on the same file, for seeding and assertions."""
    engine = create_engine(f"sqlite:///{db_path}", poolclass=NullPool)
    yield engine
    engine.dispose()


@pytest.fixture
def seeded(sync_engine: Engine) -> Engine:
    """The store populated with the 14-record example data."""
    execute_sql(sync_engine, EXAMPLE_ROWS)
    return sync_engine


@pytest.fixture
async def store(db_path: Path) -> AsyncIterator[StoreAdapter]:
    adapter = StoreAdapter(f"sqlite:///{db_path}", poolclass=NullPool)
    yield adapter
    await adapter.close()
