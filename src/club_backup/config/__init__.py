"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from club_backup.config import load_config, DatabaseProfile, BackupConfig
"""

from club_backup.config.loader import load_config
from club_backup.config.models import BackupConfig, BackupSettings, DatabaseProfile

__all__ = ["load_config", "BackupConfig", "BackupSettings", "DatabaseProfile"]
