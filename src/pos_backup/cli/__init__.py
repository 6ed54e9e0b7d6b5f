"""CLI for store profiles, snapshots, restores, and the HTTP API.

Usage:
    DB_PROFILE=local pos-backup connect
    pos-backup status
    pos-backup profiles
    pos-backup snapshot -o shop.json
    pos-backup restore shop.json --yes
    pos-backup clear --yes
    pos-backup serve --port 5000

Commands:
    connect   - Connect to a profile's store and lock it in
    status    - Show current connection status
    profiles  - List available profiles
    snapshot  - Write a snapshot of all known tables to a file
    restore   - Replace all data from a snapshot file
    clear     - Delete all data except preserved business settings
    serve     - Run the backup HTTP API
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pos_backup.adapters.engine import StoreAdapter
from pos_backup.api.routes import download_filename
from pos_backup.backup.errors import BackupError
from pos_backup.backup.snapshot import format_size
from pos_backup.config.loader import load_config
from pos_backup.config.models import BackupSettings
from pos_backup.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_adapter,
    read_profile_lock,
)
from pos_backup.service import BackupService

console = Console()

logger = logging.getLogger(__name__)


# ============================================================================
# Shared helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _config_path(args: argparse.Namespace) -> Path | None:
    config = getattr(args, "config", None)
    return Path(config) if config else None


def _load_settings(args: argparse.Namespace) -> BackupSettings:
    """The ``[backup]`` section, or defaults when there is no config file."""
    try:
        return load_config(_config_path(args)).backup
    except FileNotFoundError:
        return BackupSettings()


async def _open_service(args: argparse.Namespace) -> BackupService:
    adapter = await get_adapter(
        env_prefix=getattr(args, "env_prefix", ""),
        database_url=getattr(args, "database_url", None),
        config_path=_config_path(args),
    )
    return BackupService(adapter, settings=_load_settings(args))


def _print_backup_error(e: BackupError) -> None:
    console.print(f"[bold red]x[/bold red] {e.message}")
    if e.technical:
        console.print(f"  [dim]{e.technical}[/dim]")


def _print_warnings(warnings: list[str]) -> None:
    if not warnings:
        return
    console.print(f"\n[yellow]Warnings ({len(warnings)}):[/yellow]")
    for warning in warnings:
        console.print(f"  - {warning}")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_connect(args: argparse.Namespace) -> int:
    """Async implementation for connect command.

    Returns:
        0 on success, 1 on failure.
    """
    env_prefix = getattr(args, "env_prefix", "")

    previous_profile = read_profile_lock()

    console.print("Connecting to database...", style="dim")

    result = await connect_and_validate(
        env_prefix=env_prefix, config_path=_config_path(args)
    )

    if not result.success:
        console.print()
        console.print(f"[bold red]x[/bold red] {result.error}")
        return 1

    console.print()
    console.print(
        f"[bold green]v[/bold green] Connected to profile: "
        f"[bold cyan]{result.profile_name}[/bold cyan]"
    )
    console.print(f"  Known tables present: {len(result.tables_found)}")
    if result.missing_tables:
        console.print(
            f"  Missing tables (skipped by snapshots): [yellow]"
            f"{', '.join(result.missing_tables)}[/yellow]"
        )

    # Show profile switch notice
    if previous_profile and previous_profile != result.profile_name:
        console.print(
            f"\n[dim]Switched from[/dim] [bold]{previous_profile}[/bold] "
            f"[dim]to[/dim] [bold cyan]{result.profile_name}[/bold cyan]"
        )

    return 0


async def _async_snapshot(args: argparse.Namespace) -> int:
    """Async implementation for snapshot command.

    Creates the snapshot and immediately takes it out of the slot, the CLI
    equivalent of create followed by download.

    Returns:
        0 on success, 1 on failure.
    """
    service = await _open_service(args)
    try:
        summary = await service.create_snapshot()
        stored = service.download_snapshot()
    finally:
        await service.store.close()

    output = Path(args.output) if args.output else Path.cwd() / download_filename()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(stored.payload, encoding="utf-8")

    table = Table(title="Snapshot", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Tables", str(summary.tables))
    table.add_row("Records", str(summary.records))
    table.add_row("Size", summary.size)
    table.add_row("File", str(output))
    console.print(table)
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Returns:
        0 on success (even with skipped rows), 1 on failure.
    """
    backup_path = Path(args.file)
    if not backup_path.exists():
        console.print(f"[red]Error: backup file not found: {backup_path}[/red]")
        return 1

    if not args.yes:
        console.print(
            "[bold yellow]This replaces ALL data in the store.[/bold yellow] "
            "Re-run with [cyan]--yes[/cyan] to proceed."
        )
        return 1

    payload = backup_path.read_text(encoding="utf-8")
    console.print(
        f"Restoring [bold]{backup_path.name}[/bold] ({format_size(len(payload.encode('utf-8')))})...",
        style="dim",
    )

    service = await _open_service(args)
    try:
        summary = await service.restore(payload)
    finally:
        await service.store.close()

    results = Table(title="Restore", show_header=True, header_style="bold")
    results.add_column("Table")
    results.add_column("Restored", justify="right")
    results.add_column("Skipped", justify="right")
    for name, outcome in summary.tables.items():
        skipped = f"[red]{outcome.skipped}[/red]" if outcome.skipped else "0"
        results.add_row(name, str(outcome.inserted), skipped)
    console.print(results)

    console.print(
        f"\n[bold green]v[/bold green] Restored {summary.rows_restored} records "
        f"across {summary.tables_restored} tables "
        f"({summary.rows_skipped} skipped)"
    )
    _print_warnings(summary.warnings)
    return 0


async def _async_clear(args: argparse.Namespace) -> int:
    """Async implementation for clear command.

    Returns:
        0 on success, 1 on failure.
    """
    if not args.yes:
        console.print(
            "[bold yellow]This permanently deletes all products, sales, purchases, "
            "customers, and suppliers.[/bold yellow] Re-run with [cyan]--yes[/cyan] to proceed."
        )
        return 1

    service = await _open_service(args)
    try:
        summary = await service.clear_all()
    finally:
        await service.store.close()

    console.print(
        f"[bold green]v[/bold green] Cleared {summary.rows_cleared} records "
        f"from {summary.tables_cleared} tables"
    )
    _print_warnings(summary.warnings)
    return 0


# ============================================================================
# Sync CLI wrappers (called by argparse)
# ============================================================================


def _run(coro_fn, args: argparse.Namespace) -> int:
    """Run an async command, turning expected failures into exit code 1."""
    try:
        return asyncio.run(coro_fn(args))
    except BackupError as e:
        _print_backup_error(e)
    except (ProfileNotFoundError, KeyError, FileNotFoundError, ValueError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        console.print(f"[red]Error: {message}[/red]")
    return 1


def cmd_connect(args: argparse.Namespace) -> int:
    """Connect to the store and persist the profile lock."""
    return _run(_async_connect, args)


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Write a snapshot to a file."""
    return _run(_async_snapshot, args)


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore all data from a snapshot file."""
    return _run(_async_restore, args)


def cmd_clear(args: argparse.Namespace) -> int:
    """Clear all data except preserved settings."""
    return _run(_async_clear, args)


def cmd_status(args: argparse.Namespace) -> int:
    """Show current connection status.

    Reads only local files (lock file and TOML config) -- no database calls.

    Returns:
        0 always (informational command).
    """
    profile = read_profile_lock()

    if profile:
        table = Table(title="Connection Status", show_header=False)
        table.add_column("Key", style="dim")
        table.add_column("Value")

        table.add_row("Current profile", f"[bold cyan]{profile}[/bold cyan]")
        table.add_row("Profile source", ".pos-backup-profile")

        try:
            config = load_config(_config_path(args))
            if profile in config.profiles:
                p = config.profiles[profile]
                engine = p.url.split("://", 1)[0]
                table.add_row("Engine", engine)
                if p.description:
                    table.add_row("Description", p.description)
            table.add_row("Restore limit", format_size(config.backup.max_restore_bytes))
        except FileNotFoundError:
            table.add_row("Warning", "[yellow]pos-backup.toml not found[/yellow]")
        except ValueError as e:
            table.add_row("Warning", f"[yellow]{e}[/yellow]")

        console.print(table)
    else:
        console.print("[yellow]No connected profile.[/yellow]")
        console.print(
            "[dim]Run:[/dim] [cyan]DB_PROFILE=<name> pos-backup connect[/cyan]"
        )

    return 0


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from pos-backup.toml.

    Returns:
        0 on success, 1 if the config cannot be read.
    """
    try:
        config = load_config(_config_path(args))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = read_profile_lock()

    table = Table(title="Store Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Engine")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.url.split("://", 1)[0],
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = current profile")

    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn until interrupted."""
    import uvicorn

    from pos_backup.api.app import create_app

    try:
        service = asyncio.run(_open_service(args))
    except (ProfileNotFoundError, KeyError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    store = service.store
    if isinstance(store, StoreAdapter):
        logger.info("Serving %s store on http://%s:%d", store.dialect.name, args.host, args.port)
    uvicorn.run(create_app(service), host=args.host, port=args.port, log_config=None)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pos-backup",
        description="Backup, restore, and clear-all for the point-of-sale store",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix SHOP_ reads SHOP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to pos-backup.toml (default: ./pos-backup.toml)",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Connect to this URL directly instead of a profile",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_connect = subparsers.add_parser(
        "connect",
        help="Connect to a profile's store and lock it in",
    )
    p_connect.set_defaults(func=cmd_connect)

    p_status = subparsers.add_parser(
        "status",
        help="Show current connection status",
    )
    p_status.set_defaults(func=cmd_status)

    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    p_snapshot = subparsers.add_parser(
        "snapshot",
        help="Write a snapshot of all known tables to a file",
    )
    p_snapshot.add_argument(
        "--output",
        "-o",
        default=None,
        help="Output file (default: ./pos-backup-YYYY-MM-DD.json)",
    )
    p_snapshot.set_defaults(func=cmd_snapshot)

    p_restore = subparsers.add_parser(
        "restore",
        help="Replace all data from a snapshot file",
    )
    p_restore.add_argument("file", help="Snapshot file to restore")
    p_restore.add_argument(
        "--yes",
        action="store_true",
        help="Confirm that all current data will be replaced",
    )
    p_restore.set_defaults(func=cmd_restore)

    p_clear = subparsers.add_parser(
        "clear",
        help="Delete all data except preserved business settings",
    )
    p_clear.add_argument(
        "--yes",
        action="store_true",
        help="Confirm that all data will be deleted",
    )
    p_clear.set_defaults(func=cmd_clear)

    p_serve = subparsers.add_parser(
        "serve",
        help="Run the backup HTTP API",
    )
    p_serve.add_argument("--host", default="127.0.0.1", help="Bind address")
    p_serve.add_argument("--port", type=int, default=5000, help="Bind port")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
