"""Access guard for backup and restore.

Authentication happens upstream; this module only authorizes an
already-identified caller by looking up their role in the store.

Usage:
    from club_backup.guard import Caller, authorize

    await authorize(adapter, Caller(user_id="7270cadc-..."))
"""

import logging

from pydantic import BaseModel

from club_backup.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

SUPER_ADMIN_ROLE = "super_admin"


class Caller(BaseModel):
    """An authenticated caller.  ``user_id`` is ``None`` when no identity resolved."""

    user_id: str | None = None
    email: str | None = None


class AccessDeniedError(Exception):
    """Base class for guard failures.  ``status_code`` mirrors the HTTP status."""

    status_code = 403


class UnauthorizedError(AccessDeniedError):
    """No caller identity."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ForbiddenError(AccessDeniedError):
    """Caller identified but lacks the required role."""

    status_code = 403

    def __init__(self, message: str = "Forbidden - Super Admin access required") -> None:
        super().__init__(message)


async def authorize(
    adapter: DatabaseClient,
    caller: Caller | None,
    required_role: str = SUPER_ADMIN_ROLE,
    roles_table: str = "user_roles",
) -> None:
    """Allow the call only if ``caller`` holds ``required_role``.

    Fails closed: a role lookup error is treated as a missing role.

    Args:
        adapter: Store holding the roles table.
        caller: Caller identity from the authentication layer.
        required_role: Role that grants access.
        roles_table: Table with ``user_id`` and ``role`` columns.

    Raises:
        UnauthorizedError: If there is no caller identity.
        ForbiddenError: If the caller lacks the role or the lookup fails.
    """
    if caller is None or not caller.user_id:
        logger.warning("Rejected backup/restore call without caller identity")
        raise UnauthorizedError()

    try:
        rows = await adapter.select(
            roles_table,
            "role",
            filters={"user_id": caller.user_id, "role": required_role},
        )
    except Exception as e:
        logger.error("Role lookup failed for user %s: %s", caller.user_id, e)
        raise ForbiddenError() from e

    if not rows:
        logger.warning("User %s lacks role %s", caller.user_id, required_role)
        raise ForbiddenError()

    logger.debug("User %s authorized as %s", caller.user_id, required_role)
