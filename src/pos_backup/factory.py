"""Store adapter factory and profile management.

Resolves which store to talk to:

1. Profile mode (pos-backup.toml + .pos-backup-profile): named profiles,
   one of which is locked in after a successful ``connect``.
2. Direct URL: ``get_adapter(database_url=...)`` bypasses profiles.

All functions accept an ``env_prefix`` so several applications can share one
environment (``--env-prefix SHOP_`` reads ``SHOP_DB_PROFILE``).
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError

from pos_backup.adapters.engine import StoreAdapter
from pos_backup.backup.errors import BackupError
from pos_backup.backup.planner import DependencyPlanner
from pos_backup.config.loader import load_config
from pos_backup.config.models import StoreProfile
from pos_backup.schema.catalog import LiveSchemaCatalog
from pos_backup.schema.models import ConnectionResult

logger = logging.getLogger(__name__)

# Profile lock file path
_PROFILE_LOCK_FILE = Path.cwd() / ".pos-backup-profile"


# ============================================================================
# Profile Lock File Operations
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no store profile is configured."""

    pass


def read_profile_lock() -> str | None:
    """Read profile name from lock file.

    Returns:
        Profile name if lock file exists, None otherwise
    """
    if _PROFILE_LOCK_FILE.exists():
        return _PROFILE_LOCK_FILE.read_text().strip()
    return None


def write_profile_lock(profile_name: str) -> None:
    """Write profile name to lock file.

    Only call this after a successful connection test.
    """
    _PROFILE_LOCK_FILE.write_text(profile_name)


def clear_profile_lock() -> None:
    """Remove profile lock file."""
    if _PROFILE_LOCK_FILE.exists():
        _PROFILE_LOCK_FILE.unlink()


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from env var or lock file.

    Priority:
    1. ``{env_prefix}DB_PROFILE`` env var (initial connect or CI)
    2. .pos-backup-profile file (profile from previous connect)
    3. Raise ProfileNotFoundError

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_profile = os.environ.get(f"{env_prefix}DB_PROFILE")
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No store profile configured.\n"
        f"Run: {env_prefix}DB_PROFILE=<name> pos-backup connect"
    )


def get_active_profile(
    env_prefix: str = "",
    config_path: Path | None = None,
) -> tuple[str, StoreProfile]:
    """Get active profile name and configuration.

    Raises:
        ProfileNotFoundError: If no profile configured
        KeyError: If profile not found in pos-backup.toml
    """
    profile_name = get_active_profile_name(env_prefix)
    config = load_config(config_path)

    if profile_name not in config.profiles:
        raise KeyError(
            f"Profile '{profile_name}' not found in pos-backup.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return profile_name, config.profiles[profile_name]


# ============================================================================
# Connection and Validation
# ============================================================================


def resolve_url(profile: StoreProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(StoreProfile(url="postgresql://pos:[YOUR-PASSWORD]@h/db",
        ...                          db_password="p@ss"))
        'postgresql://pos:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


async def connect_and_validate(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | None = None,
    validate_only: bool = False,
) -> ConnectionResult:
    """Connect to a profile's store and report which known tables it has.

    On success (the store is reachable and reflectable) the profile is written to
    the lock file, unless ``validate_only``.  Missing known tables are
    reported but do not fail the connection; snapshots skip them.

    Example:
        >>> result = await connect_and_validate("local")
        >>> if result.success:
        ...     print(f"Connected to {result.profile_name}")
    """
    if profile_name is None:
        try:
            profile_name = get_active_profile_name(env_prefix)
        except ProfileNotFoundError as e:
            return ConnectionResult(success=False, error=str(e))

    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        return ConnectionResult(success=False, profile_name=profile_name, error=str(e))

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys())
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Profile '{profile_name}' not found. Available: {available}",
        )

    try:
        adapter = StoreAdapter(resolve_url(config.profiles[profile_name]))
    except ValueError as e:
        return ConnectionResult(success=False, profile_name=profile_name, error=str(e))

    planner = DependencyPlanner(config.backup.extension_tables)
    try:
        async with adapter.connect() as conn:
            live = await LiveSchemaCatalog(conn).table_names()
    except BackupError as e:
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Failed to connect to database: {e.technical or e.message}",
        )
    except SQLAlchemyError as e:
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Failed to read database schema: {e}",
        )
    finally:
        await adapter.close()

    known = planner.known_tables
    if not validate_only:
        write_profile_lock(profile_name)
    logger.info("Connected to profile %s", profile_name)

    return ConnectionResult(
        success=True,
        profile_name=profile_name,
        tables_found=[t for t in known if t in live],
        missing_tables=[t for t in known if t not in live],
    )


# ============================================================================
# Adapter Factory
# ============================================================================


async def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    database_url: str | None = None,
    config_path: Path | None = None,
) -> StoreAdapter:
    """Create a store adapter.

    A fresh adapter is created on every call; the caller owns it and must
    ``await adapter.close()``.

    Args:
        profile_name: Profile from pos-backup.toml.  When ``None``, the
            active profile (env var, then lock file) is used.
        env_prefix: Prefix for the ``DB_PROFILE`` env var.
        database_url: Direct connection URL; bypasses profile resolution.
        config_path: Alternate config file.

    Raises:
        ProfileNotFoundError: If no profile is configured.
        KeyError: If the profile is not defined.

    Example:
        >>> adapter = await get_adapter(database_url="sqlite:///pos-data.db")
    """
    if database_url:
        return StoreAdapter(database_url)

    if profile_name is None:
        profile_name, profile = get_active_profile(env_prefix, config_path)
    else:
        config = load_config(config_path)
        if profile_name not in config.profiles:
            raise KeyError(
                f"Profile '{profile_name}' not found in pos-backup.toml.\n"
                f"Available profiles: {', '.join(config.profiles.keys())}"
            )
        profile = config.profiles[profile_name]

    return StoreAdapter(resolve_url(profile))
