"""Tests for the pos-backup CLI (cli/__init__.py)."""

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from sqlalchemy.engine import Engine

from conftest import execute_sql, fetch_rows
from pos_backup.cli import build_parser, main


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Run each command from an isolated directory with its own lock file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DB_PROFILE", raising=False)
    with patch("pos_backup.factory._PROFILE_LOCK_FILE", tmp_path / ".pos-backup-profile"):
        yield tmp_path


def _write_config(workdir: Path, db_path: Path) -> Path:
    config_path = workdir / "pos-backup.toml"
    config_path.write_text(
        f'[profiles.local]\nurl = "sqlite:///{db_path}"\ndescription = "Counter"\n'
    )
    return config_path


# ============================================================================
# Test: Parser
# ============================================================================


class TestParser:
    def test_global_options(self) -> None:
        args = build_parser().parse_args(
            ["--env-prefix", "SHOP_", "--database-url", "sqlite:///x.db", "clear", "--yes"]
        )
        assert args.env_prefix == "SHOP_"
        assert args.database_url == "sqlite:///x.db"
        assert args.yes is True

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_serve_defaults(self) -> None:
        args = build_parser().parse_args(["serve"])
        assert args.host == "127.0.0.1"
        assert args.port == 5000


# ============================================================================
# Test: Profile commands
# ============================================================================


class TestProfileCommands:
    def test_connect_locks_profile(self, workdir: Path, db_path: Path) -> None:
        _write_config(workdir, db_path)

        with patch.dict("os.environ", {"DB_PROFILE": "local"}):
            assert main(["connect"]) == 0

        assert (workdir / ".pos-backup-profile").read_text() == "local"

    def test_connect_without_profile(self, workdir: Path, db_path: Path) -> None:
        _write_config(workdir, db_path)
        assert main(["connect"]) == 1

    def test_status_without_profile(self, workdir: Path, capsys: pytest.CaptureFixture) -> None:
        assert main(["status"]) == 0
        assert "No connected profile" in capsys.readouterr().out

    def test_status_with_profile(
        self, workdir: Path, db_path: Path, capsys: pytest.CaptureFixture
    ) -> None:
        _write_config(workdir, db_path)
        (workdir / ".pos-backup-profile").write_text("local")

        assert main(["status"]) == 0
        out = capsys.readouterr().out
        assert "local" in out
        assert "sqlite" in out

    def test_profiles(self, workdir: Path, db_path: Path, capsys: pytest.CaptureFixture) -> None:
        _write_config(workdir, db_path)
        assert main(["profiles"]) == 0
        assert "local" in capsys.readouterr().out

    def test_profiles_without_config(self, workdir: Path) -> None:
        assert main(["profiles"]) == 1


# ============================================================================
# Test: Data commands
# ============================================================================


class TestDataCommands:
    def test_snapshot_to_file(self, workdir: Path, db_path: Path, seeded: Engine) -> None:
        output = workdir / "out" / "shop.json"

        code = main(["--database-url", f"sqlite:///{db_path}", "snapshot", "-o", str(output)])

        assert code == 0
        document = json.loads(output.read_text())
        assert document["metadata"]["record_count"] == 14

    def test_snapshot_via_locked_profile(
        self, workdir: Path, db_path: Path, seeded: Engine
    ) -> None:
        _write_config(workdir, db_path)
        (workdir / ".pos-backup-profile").write_text("local")

        assert main(["snapshot"]) == 0
        assert len(list(workdir.glob("pos-backup-*.json"))) == 1

    def test_restore_requires_confirmation(
        self, workdir: Path, db_path: Path, seeded: Engine
    ) -> None:
        backup = workdir / "shop.json"
        main(["--database-url", f"sqlite:///{db_path}", "snapshot", "-o", str(backup)])
        execute_sql(seeded, ["DELETE FROM sale_items"])

        assert main(["--database-url", f"sqlite:///{db_path}", "restore", str(backup)]) == 1
        assert fetch_rows(seeded, "SELECT COUNT(*) AS n FROM sale_items")[0]["n"] == 0

        assert main(["--database-url", f"sqlite:///{db_path}", "restore", str(backup), "--yes"]) == 0
        assert fetch_rows(seeded, "SELECT COUNT(*) AS n FROM sale_items")[0]["n"] == 4

    def test_restore_missing_file(self, workdir: Path, db_path: Path) -> None:
        code = main(["--database-url", f"sqlite:///{db_path}", "restore", "nope.json", "--yes"])
        assert code == 1

    def test_restore_invalid_file(
        self, workdir: Path, db_path: Path, capsys: pytest.CaptureFixture
    ) -> None:
        backup = workdir / "broken.json"
        backup.write_text('{"format_version": "9.0", "tables": {}}')

        code = main(["--database-url", f"sqlite:///{db_path}", "restore", str(backup), "--yes"])

        assert code == 1
        assert "Unsupported backup format version" in capsys.readouterr().out

    def test_clear(self, workdir: Path, db_path: Path, seeded: Engine) -> None:
        assert main(["--database-url", f"sqlite:///{db_path}", "clear"]) == 1
        assert fetch_rows(seeded, "SELECT COUNT(*) AS n FROM products")[0]["n"] == 5

        assert main(["--database-url", f"sqlite:///{db_path}", "clear", "--yes"]) == 0
        assert fetch_rows(seeded, "SELECT COUNT(*) AS n FROM products")[0]["n"] == 0

    def test_unreachable_store(self, workdir: Path) -> None:
        url = f"sqlite:///{workdir}/missing/dir/pos.db"
        assert main(["--database-url", url, "clear", "--yes"]) == 1

    def test_config_backup_section_applies(
        self, workdir: Path, db_path: Path, seeded: Engine
    ) -> None:
        config_path = _write_config(workdir, db_path)
        config_path.write_text(
            config_path.read_text() + '\n[backup]\nsource_label = "branch-7"\n'
        )
        output = workdir / "shop.json"

        code = main(
            ["--config", str(config_path), "--database-url", f"sqlite:///{db_path}",
             "snapshot", "-o", str(output)]
        )

        assert code == 0
        assert json.loads(output.read_text())["source_label"] == "branch-7"
