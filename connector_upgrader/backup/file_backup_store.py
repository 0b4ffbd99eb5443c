"""
Directory snapshot and restore for connector files.

Copies whole directory trees aside before an uninstall and puts them back
afterwards. Copy failures are reported through return values so one broken
subdirectory never stops the rest of the run, and nothing is ever deleted
unless the copy that protects it succeeded.
"""

import shutil
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from connector_upgrader.core.exceptions import BackupError
from connector_upgrader.progress.run_log import RunLog

PathLike = Union[str, Path]


class FileBackupStore:
    """
    Recursive directory backup with existence checks and empty-dir cleanup.

    Every mutating method returns a bool and logs failures to the run log
    instead of raising.
    """

    def __init__(self, run_log: Optional[RunLog] = None):
        self.run_log = run_log

    def _log(self, message: str) -> None:
        if self.run_log is not None:
            self.run_log.info(message)
        else:
            logger.info(message)

    # =========================================================================
    # COPY PRIMITIVES
    # =========================================================================

    def _make_dir(self, directory: Path) -> None:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackupError(f"Failed to create directory: {directory}") from e

    def _copy_tree(self, source: Path, destination: Path) -> None:
        """Copy the contents of ``source`` into ``destination``, merging."""
        if not source.is_dir():
            raise BackupError(f"Source directory not found: {source}")
        try:
            shutil.copytree(source, destination, dirs_exist_ok=True)
        except (shutil.Error, OSError) as e:
            raise BackupError(f"Failed to copy {source} to {destination}: {e}") from e

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================

    def backup(self, source_dir: PathLike, dest_dir: PathLike) -> bool:
        """
        Copy a directory tree into a backup location.

        Args:
            source_dir: Directory to save
            dest_dir: Backup location, created recursively

        Returns:
            True if every file was copied, False otherwise
        """
        source, destination = Path(source_dir), Path(dest_dir)
        try:
            self._make_dir(destination)
            self._copy_tree(source, destination)
        except BackupError as e:
            logger.warning(f"❌ {e.message}")
            self._log(f"Failed to backup connector dir: {source}")
            return False
        logger.debug(f"✅ Backed up {source} -> {destination}")
        return True

    def restore(self, backup_dir: PathLike, target_dir: PathLike) -> bool:
        """
        Copy a backup back into place and drop the backup on success.

        The backup directory is removed only when the copy succeeded. A
        backup that cannot be deleted afterwards counts as a failed restore.

        Args:
            backup_dir: Backup created by :meth:`backup`
            target_dir: Directory to restore into

        Returns:
            True if the copy succeeded and the backup is gone
        """
        backup, target = Path(backup_dir), Path(target_dir)
        try:
            self._make_dir(target)
            self._copy_tree(backup, target)
        except BackupError as e:
            logger.warning(f"❌ {e.message}")
            self._log(f"Failed to restore from backup directory: {backup}")
            return False

        self._log(f"Delete backup directory: {backup}")
        return self.remove_tree(backup)

    def prune_if_empty(self, directory: PathLike) -> bool:
        """
        Delete a directory only if it exists and has no entries.

        Returns:
            True if the directory was removed
        """
        directory = Path(directory)
        if not directory.is_dir() or any(directory.iterdir()):
            return False
        self._log(f"Delete backup directory: {directory}")
        return self.remove_tree(directory)

    def remove_tree(self, directory: PathLike) -> bool:
        """
        Delete a directory tree if it exists.

        Returns:
            True if the tree is gone afterwards
        """
        directory = Path(directory)
        if not directory.exists():
            return True
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.error(f"❌ Failed to delete {directory}: {e}")
            self._log(f"Failed to delete directory: {directory}")
            return False
        return True
