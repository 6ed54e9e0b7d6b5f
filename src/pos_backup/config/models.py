"""Pydantic models for pos-backup configuration."""

from pydantic import BaseModel, Field

from pos_backup.backup.clear import DEFAULT_PRESERVED_SETTING_KEYS
from pos_backup.backup.planner import DEFAULT_EXTENSION_TABLES
from pos_backup.backup.restore import DEFAULT_MAX_RESTORE_BYTES


class StoreProfile(BaseModel):
    """Store connection profile from pos-backup.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class BackupSettings(BaseModel):
    """The ``[backup]`` section."""

    max_restore_bytes: int = Field(default=DEFAULT_MAX_RESTORE_BYTES, gt=0)
    source_label: str = "awesome-shop-pos"
    settings_table: str = "settings"
    settings_key_column: str = "key"
    preserved_setting_keys: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PRESERVED_SETTING_KEYS)
    )
    extension_tables: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXTENSION_TABLES)
    )


class BackupConfig(BaseModel):
    """Complete configuration from pos-backup.toml."""

    profiles: dict[str, StoreProfile] = Field(default_factory=dict)
    backup: BackupSettings = Field(default_factory=BackupSettings)
