"""Pydantic models for backup configuration."""

from typing import Literal

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from club-backup.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: Literal["postgres", "supabase"] = "postgres"
    key: str | None = None  # Supabase service-role key


class BackupSettings(BaseModel):
    """Tunables for backup, restore, and the access guard."""

    batch_size: int = Field(default=100, ge=1)
    error_message_cap: int = Field(default=20, ge=0)
    required_role: str = "super_admin"
    roles_table: str = "user_roles"


class BackupConfig(BaseModel):
    """Complete configuration from club-backup.toml."""

    profiles: dict[str, DatabaseProfile]
    settings: BackupSettings = Field(default_factory=BackupSettings)
