"""TOML configuration loader for pos-backup.

Reads ``pos-backup.toml`` and returns a ``BackupConfig`` with parsed
store profiles and backup settings.
"""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from pos_backup.config.models import BackupConfig, BackupSettings, StoreProfile

CONFIG_FILENAME = "pos-backup.toml"


def load_config(config_path: Path | None = None) -> BackupConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to pos-backup.toml.  Defaults to
            ``Path.cwd() / "pos-backup.toml"``.

    Returns:
        BackupConfig with all profiles and backup settings.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the config format is invalid.

    Example:
        >>> config = load_config(Path("pos-backup.toml"))
        >>> config.backup.max_restore_bytes
        10485760
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config not found: {config_path}\n"
            f"Create {CONFIG_FILENAME} with at least one [profiles.<name>] section."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path.name}: {e}") from e

    try:
        # Parse profiles
        profiles = {
            name: StoreProfile(**profile_data)
            for name, profile_data in data.get("profiles", {}).items()
        }

        # Parse backup settings
        backup = BackupSettings(**data.get("backup", {}))
    except (ValidationError, TypeError) as e:
        raise ValueError(f"Invalid configuration in {config_path.name}: {e}") from e

    return BackupConfig(profiles=profiles, backup=backup)
