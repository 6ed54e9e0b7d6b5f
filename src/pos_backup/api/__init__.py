"""HTTP surface for the backup engine."""

from pos_backup.api.app import create_app

__all__ = ["create_app"]
