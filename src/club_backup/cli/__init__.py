"""Command-line interface for database backup and restore.

Usage:
    DB_PROFILE=prod club-backup connect
    club-backup profiles
    club-backup backup --user-id <uuid>
    club-backup backup --user-id <uuid> -o backups/before-migration.json
    club-backup restore backups/database-backup-2026-10-19.json --user-id <uuid>
    club-backup validate backups/database-backup-2026-10-19.json
    club-backup order club_members profiles clubs

Commands:
    connect   - Check the active profile's connection and remember it
    profiles  - List available profiles
    backup    - Write every registered table to a JSON snapshot
    restore   - Replace table contents from a snapshot
    validate  - Check a snapshot file without touching the database
    order     - Show the order tables would be restored in

Exit codes for ``restore``: 0 full success, 2 partial success (some
tables failed), 1 invalid snapshot or any other error.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from club_backup.backup.backup_restore import BackupError
from club_backup.backup.models import RestoreReport, RestoreStatus
from club_backup.backup.snapshot import (
    InvalidSnapshotError,
    load_snapshot_file,
    save_snapshot,
    validate_backup,
)
from club_backup.config.loader import load_config
from club_backup.factory import (
    ProfileNotFoundError,
    get_active_profile_name,
    get_adapter,
    read_profile_lock,
    write_profile_lock,
)
from club_backup.guard import AccessDeniedError, Caller
from club_backup.registry import DEFAULT_REGISTRY
from club_backup.service import BackupService, OperationInProgressError

console = Console()
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2


def _config_path(args: argparse.Namespace) -> Path | None:
    return Path(args.config) if getattr(args, "config", None) else None


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_connect(args: argparse.Namespace) -> int:
    """Resolve the profile, check the connection, write the lock file."""
    try:
        profile = get_active_profile_name(env_prefix=args.env_prefix)
    except ProfileNotFoundError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return EXIT_ERROR

    previous_profile = read_profile_lock()
    console.print("Connecting to database...", style="dim")

    try:
        adapter = await get_adapter(
            profile_name=profile,
            config_path=_config_path(args),
            check_connection=True,
        )
    except Exception as e:
        console.print(f"[bold red]x[/bold red] Failed to connect: {e}")
        return EXIT_ERROR
    await adapter.close()

    write_profile_lock(profile)
    console.print(
        f"[bold green]v[/bold green] Connected to profile: "
        f"[bold cyan]{profile}[/bold cyan]"
    )
    if previous_profile and previous_profile != profile:
        console.print(
            f"\n[dim]Switched from[/dim] [bold]{previous_profile}[/bold] "
            f"[dim]to[/dim] [bold cyan]{profile}[/bold cyan]"
        )
    return EXIT_OK


async def _async_backup(args: argparse.Namespace) -> int:
    """Create a snapshot and write it to disk."""
    config = load_config(_config_path(args))
    adapter = await get_adapter(env_prefix=args.env_prefix, config_path=_config_path(args))
    try:
        service = BackupService(adapter, DEFAULT_REGISTRY, config.settings)
        snapshot = await service.create_backup(Caller(user_id=args.user_id))
    finally:
        await adapter.close()

    path = save_snapshot(snapshot, args.output)
    metadata = snapshot.metadata

    console.print(
        f"[bold green]v[/bold green] Backed up {len(metadata.tables)} tables, "
        f"{sum(metadata.counts.values())} rows"
    )
    console.print(f"  File: [cyan]{path}[/cyan]")
    if metadata.failed_tables:
        console.print(
            f"  [yellow]Could not read: {', '.join(metadata.failed_tables)}[/yellow]"
        )
    return EXIT_OK


async def _async_restore(args: argparse.Namespace) -> int:
    """Restore a snapshot file after confirmation."""
    payload = load_snapshot_file(args.backup_path)

    if not args.yes:
        console.print(
            f"[bold yellow]![/bold yellow] This will REPLACE table contents from: "
            f"[cyan]{args.backup_path}[/cyan]"
        )
        response = input("Continue? [y/N] ")
        if response.lower() not in ["y", "yes"]:
            console.print("Cancelled.")
            return EXIT_OK

    config = load_config(_config_path(args))
    adapter = await get_adapter(env_prefix=args.env_prefix, config_path=_config_path(args))
    try:
        service = BackupService(adapter, DEFAULT_REGISTRY, config.settings)
        report = await service.restore_backup(Caller(user_id=args.user_id), payload)
    finally:
        await adapter.close()

    _print_report(report)

    if report.status is RestoreStatus.SUCCESS:
        return EXIT_OK
    if report.status is RestoreStatus.PARTIAL:
        return EXIT_PARTIAL
    return EXIT_ERROR


def _print_report(report: RestoreReport) -> None:
    if report.status is RestoreStatus.INVALID_FORMAT:
        console.print(f"[bold red]x[/bold red] {report.message}")
        return

    table = Table(title="Restore Results", show_header=True, header_style="bold")
    table.add_column("Table", style="dim")
    table.add_column("Rows", justify="right")
    table.add_column("Status")

    for name, result in report.table_results.items():
        if result.restored:
            status = "[green]restored[/green]"
        else:
            status = f"[red]failed[/red] {result.error or ''}"
        table.add_row(name, str(result.inserted), status)

    console.print(table)

    if report.status is RestoreStatus.SUCCESS:
        console.print(f"\n[bold green]v[/bold green] {report.message}")
    else:
        console.print(f"\n[bold yellow]![/bold yellow] {report.message}")
        for message in report.error_messages:
            console.print(f"   - {message}")


# ============================================================================
# Sync command wrappers
# ============================================================================


def _run(coro_fn, args: argparse.Namespace) -> int:
    """Run an async command, mapping expected failures to exit codes."""
    try:
        return asyncio.run(coro_fn(args))
    except AccessDeniedError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return EXIT_ERROR
    except (
        ProfileNotFoundError,
        FileNotFoundError,
        InvalidSnapshotError,
        OperationInProgressError,
        BackupError,
    ) as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return EXIT_ERROR
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[bold red]x[/bold red] {type(e).__name__}: {escape(str(e))}")
        return EXIT_ERROR


def cmd_connect(args: argparse.Namespace) -> int:
    """Handle connect command."""
    return _run(_async_connect, args)


def cmd_backup(args: argparse.Namespace) -> int:
    """Handle backup command."""
    return _run(_async_backup, args)


def cmd_restore(args: argparse.Namespace) -> int:
    """Handle restore command."""
    return _run(_async_restore, args)


def cmd_validate(args: argparse.Namespace) -> int:
    """Handle validate command."""
    try:
        payload = load_snapshot_file(args.backup_path)
    except InvalidSnapshotError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return EXIT_ERROR

    result = validate_backup(payload, known_tables=DEFAULT_REGISTRY.names)
    console.print(f"Validating: [cyan]{args.backup_path}[/cyan]")

    if result["errors"]:
        console.print(f"\n[red]INVALID - Found {len(result['errors'])} errors:[/red]")
        for error in result["errors"]:
            console.print(f"   - {error}")

    if result["warnings"]:
        console.print(f"\n[yellow]Found {len(result['warnings'])} warnings:[/yellow]")
        for warning in result["warnings"]:
            console.print(f"   - {warning}")

    if result["valid"]:
        console.print("\n[bold green]v[/bold green] Backup is valid")
        return EXIT_OK
    console.print("\n[bold red]x[/bold red] Backup is invalid")
    return EXIT_ERROR


def cmd_order(args: argparse.Namespace) -> int:
    """Handle order command."""
    tables = args.tables or DEFAULT_REGISTRY.names
    for position, name in enumerate(DEFAULT_REGISTRY.restore_order(tables), 1):
        suffix = "" if DEFAULT_REGISTRY.get(name) else "  [yellow](unregistered)[/yellow]"
        console.print(f"{position:>3}. {name}{suffix}")
    return EXIT_OK


def cmd_profiles(args: argparse.Namespace) -> int:
    """Handle profiles command."""
    try:
        config = load_config(_config_path(args))
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR

    current = read_profile_lock()

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        label = f"[bold cyan]{name}[/bold cyan] *" if name == current else name
        table.add_row(label, profile.provider, profile.description)

    console.print(table)
    return EXIT_OK


# ============================================================================
# Entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="club-backup",
        description="Whole-database backup and restore for the club platform",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help="Prefix for the DB_PROFILE env var (e.g. CLUBS_ reads CLUBS_DB_PROFILE)",
    )
    parser.add_argument(
        "--config",
        help="Path to club-backup.toml (default: ./club-backup.toml)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.required = True

    connect_parser = subparsers.add_parser("connect", help="Check and remember the active profile")
    connect_parser.set_defaults(func=cmd_connect)

    profiles_parser = subparsers.add_parser("profiles", help="List profiles")
    profiles_parser.set_defaults(func=cmd_profiles)

    backup_parser = subparsers.add_parser("backup", help="Create database backup")
    backup_parser.add_argument("--user-id", required=True, help="Caller's user id (must be super admin)")
    backup_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: backups/database-backup-{timestamp}.json)",
    )
    backup_parser.set_defaults(func=cmd_backup)

    restore_parser = subparsers.add_parser("restore", help="Restore from backup")
    restore_parser.add_argument("backup_path", help="Path to backup JSON file")
    restore_parser.add_argument("--user-id", required=True, help="Caller's user id (must be super admin)")
    restore_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    restore_parser.set_defaults(func=cmd_restore)

    validate_parser = subparsers.add_parser("validate", help="Validate backup file")
    validate_parser.add_argument("backup_path", help="Path to backup JSON file")
    validate_parser.set_defaults(func=cmd_validate)

    order_parser = subparsers.add_parser("order", help="Show restore order")
    order_parser.add_argument("tables", nargs="*", help="Tables to order (default: all registered)")
    order_parser.set_defaults(func=cmd_order)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
