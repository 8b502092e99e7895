"""club-backup: Whole-database backup and restore for the club platform.

Captures every registered table into a single JSON snapshot and restores
it table by table in foreign-key order, reporting per-table outcomes.
Only super admins may run either operation.

Usage:
    from club_backup import BackupService, Caller, get_adapter
    from club_backup import create_backup, restore_backup, DEFAULT_REGISTRY
    from club_backup import RestoreReport, RestoreStatus, Snapshot
"""

__version__ = "0.1.0"

# Adapters
from club_backup.adapters.base import DatabaseClient
from club_backup.adapters.memory import InMemoryAdapter
from club_backup.adapters.postgres import AsyncPostgresAdapter

# Config
from club_backup.config.loader import load_config
from club_backup.config.models import BackupConfig, BackupSettings, DatabaseProfile

# Factory
from club_backup.factory import ProfileNotFoundError, get_adapter, resolve_url

# Registry
from club_backup.registry import DEFAULT_REGISTRY, ForeignKey, TableDef, TableRegistry

# Backup and restore
from club_backup.backup.backup_restore import BackupError, create_backup, restore_backup
from club_backup.backup.models import RestoreReport, RestoreStatus, Snapshot, TableResult
from club_backup.backup.snapshot import InvalidSnapshotError, parse_snapshot, validate_backup

# Guard and service
from club_backup.guard import (
    AccessDeniedError,
    Caller,
    ForbiddenError,
    UnauthorizedError,
    authorize,
)
from club_backup.service import BackupService, OperationInProgressError

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "InMemoryAdapter",
    # Config
    "load_config",
    "DatabaseProfile",
    "BackupSettings",
    "BackupConfig",
    # Factory
    "get_adapter",
    "ProfileNotFoundError",
    "resolve_url",
    # Registry
    "DEFAULT_REGISTRY",
    "TableRegistry",
    "TableDef",
    "ForeignKey",
    # Backup and restore
    "create_backup",
    "restore_backup",
    "BackupError",
    "Snapshot",
    "RestoreReport",
    "RestoreStatus",
    "TableResult",
    "InvalidSnapshotError",
    "parse_snapshot",
    "validate_backup",
    # Guard and service
    "Caller",
    "authorize",
    "AccessDeniedError",
    "UnauthorizedError",
    "ForbiddenError",
    "BackupService",
    "OperationInProgressError",
]

# Optional: AsyncSupabaseAdapter (only available with supabase extra)
try:
    from club_backup.adapters.supabase import AsyncSupabaseAdapter

    __all__.append("AsyncSupabaseAdapter")
except ImportError:
    # supabase extra not installed -- AsyncSupabaseAdapter unavailable
    pass
