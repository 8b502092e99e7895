"""Backup and restore of every registered table.

Usage:
    from club_backup.backup import create_backup, restore_backup, parse_snapshot
    from club_backup.backup import Snapshot, RestoreReport, RestoreStatus
"""

from club_backup.backup.backup_restore import (
    BackupError,
    create_backup,
    restore_backup,
)
from club_backup.backup.codec import Row, RowFormatError, decode_rows, encode_rows
from club_backup.backup.models import (
    RestoreReport,
    RestoreStatus,
    Snapshot,
    SnapshotMetadata,
    TableResult,
)
from club_backup.backup.snapshot import (
    InvalidSnapshotError,
    build_snapshot,
    load_snapshot_file,
    parse_snapshot,
    save_snapshot,
    validate_backup,
)
from club_backup.registry import ForeignKey, TableDef

__all__ = [
    "create_backup",
    "restore_backup",
    "BackupError",
    "Row",
    "RowFormatError",
    "encode_rows",
    "decode_rows",
    "TableDef",
    "ForeignKey",
    "Snapshot",
    "SnapshotMetadata",
    "RestoreReport",
    "RestoreStatus",
    "TableResult",
    "InvalidSnapshotError",
    "build_snapshot",
    "parse_snapshot",
    "save_snapshot",
    "load_snapshot_file",
    "validate_backup",
]
