"""
Backup and restore of state that an uninstall would destroy.
"""

from .file_backup_store import FileBackupStore
from .settings_snapshot import SettingsSnapshotStore

__all__ = ["FileBackupStore", "SettingsSnapshotStore"]
