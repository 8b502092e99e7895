"""Whole-database backup and restore driven by a ``TableRegistry``.

Backup reads every registered table into a ``Snapshot``.  Restore
replays a snapshot table by table in dependency order: clear the
table, then insert its rows in fixed-size batches.  A failure on one
table is recorded and the next table is attempted; only a malformed
snapshot stops a restore before it starts.

Tables are processed strictly one at a time, and so are the batches
within a table: a child table must never be written before its parents
land.  There is no concurrent variant of either function.

Usage:
    from club_backup.backup.backup_restore import create_backup, restore_backup
    from club_backup.registry import DEFAULT_REGISTRY

    snapshot = await create_backup(adapter, DEFAULT_REGISTRY)
    report = await restore_backup(adapter, snapshot.to_document(), DEFAULT_REGISTRY)
    if not report.success:
        print(report.failed_tables)
"""

import logging
from datetime import datetime
from typing import Any

from club_backup.adapters.base import DatabaseClient
from club_backup.backup.codec import RowFormatError, encode_rows
from club_backup.backup.models import (
    RestoreReport,
    RestoreStatus,
    Snapshot,
    TableResult,
)
from club_backup.backup.snapshot import InvalidSnapshotError, build_snapshot, parse_snapshot
from club_backup.registry import TableRegistry

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_ERROR_CAP = 20


class BackupError(Exception):
    """Raised when a backup could not read a single table."""

    pass


async def create_backup(
    adapter: DatabaseClient,
    registry: TableRegistry,
    *,
    now: datetime | None = None,
) -> Snapshot:
    """Read every registered table into a snapshot.

    A table whose read fails is logged, left out of ``metadata.tables``
    and named in ``metadata.failed_tables``; the rest of the backup
    carries on.  Read-only.

    Args:
        adapter: Store to read from.
        registry: Tables to capture, read in registry order.
        now: Timestamp for ``metadata.created_at`` (defaults to now, UTC).

    Returns:
        The snapshot.

    Raises:
        BackupError: If every table read failed.
    """
    dumps: dict[str, list[dict[str, Any]]] = {}
    failed: list[str] = []

    for table in registry.backup_tables():
        try:
            rows = await adapter.select(table, "*")
        except Exception as e:
            logger.error("Error backing up table %s: %s", table, e)
            failed.append(table)
            continue

        dumps[table] = encode_rows(rows)
        logger.info("Backed up %d rows from %s", len(rows), table)

    if not dumps:
        raise BackupError(
            f"Backup failed: no table could be read ({len(failed)} failed)"
        )

    snapshot = build_snapshot(dumps, failed_tables=failed, created_at=now)
    logger.info(
        "Backup completed: %d tables, %d failed",
        len(snapshot.metadata.tables), len(failed),
    )
    return snapshot


async def restore_backup(
    adapter: DatabaseClient,
    payload: Any,
    registry: TableRegistry,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    error_cap: int = DEFAULT_ERROR_CAP,
) -> RestoreReport:
    """Restore a snapshot into the store.

    Args:
        adapter: Store to write to.
        payload: A ``Snapshot``, or anything ``parse_snapshot`` accepts.
        registry: Supplies the dependency order.
        batch_size: Rows per ``insert_many`` call.
        error_cap: Maximum number of messages kept in ``error_messages``.

    Returns:
        ``RestoreReport``.  A malformed payload yields status
        ``INVALID_FORMAT`` without any store call.

    Example:
        report = await restore_backup(adapter, Path("backup.json").read_text(), registry)
        print(report.status, report.tables_restored)
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    if isinstance(payload, Snapshot):
        snapshot = payload
    else:
        try:
            snapshot = parse_snapshot(payload)
        except InvalidSnapshotError as e:
            logger.error("Invalid backup: %s", e)
            return RestoreReport(status=RestoreStatus.INVALID_FORMAT, message=str(e))

    ordered = registry.restore_order(snapshot.metadata.tables)
    logger.info("Starting to restore %d tables", len(ordered))

    results: dict[str, TableResult] = {}
    messages: list[str] = []

    for table in ordered:
        result = await _restore_table(adapter, snapshot, table, batch_size, messages)
        if result is not None:
            results[table] = result

    restored = sum(1 for r in results.values() if r.restored)
    failed = [name for name, r in results.items() if not r.restored]

    if failed:
        status = RestoreStatus.PARTIAL
        message = (
            f"Database restored with {len(failed)} error(s). "
            f"{restored} table(s) restored successfully."
        )
        logger.warning("Restore finished with errors in: %s", ", ".join(failed))
    else:
        status = RestoreStatus.SUCCESS
        message = "Database restored successfully"
        logger.info("Restore completed: %d tables restored", restored)

    return RestoreReport(
        status=status,
        message=message,
        tables_restored=restored,
        errors=len(failed),
        total_tables=len(ordered),
        failed_tables=failed,
        table_results=results,
        error_messages=messages[:error_cap],
    )


async def _restore_table(
    adapter: DatabaseClient,
    snapshot: Snapshot,
    table: str,
    batch_size: int,
    messages: list[str],
) -> TableResult | None:
    """Clear and refill one table.

    Returns ``None`` when the table is skipped (no rows to restore),
    otherwise the table's result.  Errors are appended to ``messages``.
    """
    try:
        rows = snapshot.rows(table)
    except RowFormatError as e:
        logger.error("Skipping %s - invalid row format: %s", table, e)
        messages.append(f"Invalid data for {table}: {e}")
        return TableResult(restored=False, inserted=0, error=str(e))

    if not rows:
        logger.info("Skipping %s - no data", table)
        return None

    logger.info("Processing table %s with %d rows", table, len(rows))

    try:
        await adapter.delete_all(table)
    except Exception as e:
        logger.error("Error clearing table %s: %s", table, e)
        messages.append(f"Failed to clear {table}: {e}")
        return TableResult(restored=False, inserted=0, error=str(e))

    inserted = 0
    for start in range(0, len(rows), batch_size):
        batch = rows[start:start + batch_size]
        try:
            await adapter.insert_many(table, batch)
        except Exception as e:
            logger.error(
                "Error inserting batch %d into %s after %d rows: %s",
                start // batch_size + 1, table, inserted, e,
            )
            messages.append(f"Failed to insert into {table}: {e}")
            return TableResult(restored=False, inserted=inserted, error=str(e))
        inserted += len(batch)

    logger.info("Restored %d rows to %s", inserted, table)
    return TableResult(restored=True, inserted=inserted)
