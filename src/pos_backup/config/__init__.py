"""Configuration loading for pos-backup."""

from pos_backup.config.loader import load_config
from pos_backup.config.models import BackupConfig, BackupSettings, StoreProfile

__all__ = ["load_config", "BackupConfig", "BackupSettings", "StoreProfile"]
