"""Guarded entry points for backup and restore.

``BackupService`` is the surface callers use: it checks the caller's
role, then runs the orchestrator.  One service instance runs one
operation at a time; a second call while one is in flight is rejected
instead of interleaving with it.

Usage:
    from club_backup.service import BackupService
    from club_backup.guard import Caller

    service = BackupService(adapter)
    snapshot = await service.create_backup(Caller(user_id=uid))
    report = await service.restore_backup(Caller(user_id=uid), snapshot.to_json())
"""

import asyncio
import logging
from typing import Any

from club_backup.adapters.base import DatabaseClient
from club_backup.backup.backup_restore import create_backup, restore_backup
from club_backup.backup.models import RestoreReport, Snapshot
from club_backup.config.models import BackupSettings
from club_backup.guard import Caller, authorize
from club_backup.registry import DEFAULT_REGISTRY, TableRegistry

logger = logging.getLogger(__name__)


class OperationInProgressError(Exception):
    """Raised when a backup or restore is already running on this service."""

    pass


class BackupService:
    """Role-checked, single-writer backup and restore.

    Args:
        adapter: Store to back up from and restore into.
        registry: Table registry (default: the club platform tables).
        settings: Batch size, error cap, and guard settings.
    """

    def __init__(
        self,
        adapter: DatabaseClient,
        registry: TableRegistry = DEFAULT_REGISTRY,
        settings: BackupSettings | None = None,
    ) -> None:
        self._adapter = adapter
        self._registry = registry
        self._settings = settings or BackupSettings()
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """True while a backup or restore is running."""
        return self._lock.locked()

    async def create_backup(self, caller: Caller | None) -> Snapshot:
        """Authorize ``caller`` and capture every registered table.

        Raises:
            AccessDeniedError: If the caller is not a super admin.
            OperationInProgressError: If another operation is running.
            BackupError: If no table could be read.
        """
        await self._authorize(caller)
        async with self._exclusive("backup"):
            logger.info("Starting database backup for user: %s", caller.user_id)
            return await create_backup(self._adapter, self._registry)

    async def restore_backup(self, caller: Caller | None, payload: Any) -> RestoreReport:
        """Authorize ``caller`` and restore ``payload``.

        Args:
            caller: Caller identity.
            payload: A ``Snapshot``, a snapshot document, JSON text, or a
                wrapped envelope.

        Returns:
            ``RestoreReport`` (``INVALID_FORMAT`` for a malformed payload).

        Raises:
            AccessDeniedError: If the caller is not a super admin.
            OperationInProgressError: If another operation is running.
        """
        await self._authorize(caller)
        async with self._exclusive("restore"):
            logger.info("Starting database restore for user: %s", caller.user_id)
            return await restore_backup(
                self._adapter,
                payload,
                self._registry,
                batch_size=self._settings.batch_size,
                error_cap=self._settings.error_message_cap,
            )

    async def _authorize(self, caller: Caller | None) -> None:
        await authorize(
            self._adapter,
            caller,
            required_role=self._settings.required_role,
            roles_table=self._settings.roles_table,
        )

    def _exclusive(self, operation: str) -> asyncio.Lock:
        if self._lock.locked():
            raise OperationInProgressError(
                f"Cannot start {operation}: another backup or restore is running"
            )
        return self._lock
