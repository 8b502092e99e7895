"""Adapter factory and profile resolution.

The active profile comes from the ``<PREFIX>DB_PROFILE`` environment
variable, falling back to the ``.db-profile`` lock file that
``club-backup connect`` writes in the working directory.

Usage:
    from club_backup.factory import get_adapter

    adapter = await get_adapter()                 # active profile
    adapter = await get_adapter(profile_name="prod")
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from club_backup.adapters.base import DatabaseClient
from club_backup.adapters.postgres import AsyncPostgresAdapter
from club_backup.config.loader import load_config
from club_backup.config.models import DatabaseProfile

logger = logging.getLogger(__name__)

PROFILE_LOCK_FILENAME = ".db-profile"


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


# ============================================================================
# Profile Lock File Operations
# ============================================================================


def _profile_lock_path() -> Path:
    return Path.cwd() / PROFILE_LOCK_FILENAME


def read_profile_lock() -> str | None:
    """Read profile name from lock file.

    Returns:
        Profile name if lock file exists, None otherwise
    """
    lock = _profile_lock_path()
    if lock.exists():
        return lock.read_text().strip() or None
    return None


def write_profile_lock(profile_name: str) -> None:
    """Write profile name to lock file.

    Only call this after a successful connection check.
    """
    _profile_lock_path().write_text(profile_name)


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from env var or lock file.

    Priority:
    1. ``{env_prefix}DB_PROFILE`` env var
    2. ``.db-profile`` file in the working directory
    3. Raise ProfileNotFoundError

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Run: {env_var}=<name> club-backup connect"
    )


def get_active_profile(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get profile name and its configuration.

    Raises:
        ProfileNotFoundError: If no profile is configured or the name is
            not in the config file.
    """
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix=env_prefix)
    config = load_config(config_path)

    if profile_name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found. "
            f"Available: {', '.join(config.profiles.keys()) or '(none)'}"
        )

    return profile_name, config.profiles[profile_name]


# ============================================================================
# Adapter Construction
# ============================================================================


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def create_adapter(profile: DatabaseProfile) -> DatabaseClient:
    """Build the adapter for a profile's provider.

    Raises:
        ValueError: If a Supabase profile has no ``key``.
        ImportError: If the ``supabase`` extra is not installed.
    """
    if profile.provider == "supabase":
        if not profile.key:
            raise ValueError("Supabase profiles need a service-role 'key'")
        from club_backup.adapters.supabase import AsyncSupabaseAdapter

        return AsyncSupabaseAdapter(url=profile.url, key=profile.key)

    return AsyncPostgresAdapter(resolve_url(profile))


async def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | None = None,
    check_connection: bool = False,
) -> DatabaseClient:
    """Create an adapter for the named (or active) profile.

    A new adapter is created per call; callers own it and must
    ``await adapter.close()``.

    Args:
        profile_name: Profile from the config file.  ``None`` resolves
            the active profile.
        env_prefix: Prefix for the ``DB_PROFILE`` env var.
        config_path: Config file location (default: cwd).
        check_connection: Run ``SELECT 1`` on Postgres profiles before
            returning.

    Raises:
        ProfileNotFoundError: If the profile cannot be resolved.
    """
    name, profile = get_active_profile(profile_name, env_prefix, config_path)
    adapter = create_adapter(profile)
    logger.debug("Created %s adapter for profile %s", profile.provider, name)

    if check_connection and isinstance(adapter, AsyncPostgresAdapter):
        try:
            await adapter.test_connection()
        except Exception:
            await adapter.close()
            raise

    return adapter
