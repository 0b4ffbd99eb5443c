"""
Settings snapshot persistence.

Saves the provider settings that an uninstall would wipe (organization name
and enabled modules) to a JSON file and reads them back after the new package
is installed. The file's existence is the signal that a restore is pending.
"""

from pathlib import Path
from typing import Iterable, Optional, Union

from loguru import logger
from pydantic import ValidationError

from connector_upgrader.core.exceptions import RestoreError
from connector_upgrader.core.models import SettingsSnapshot
from connector_upgrader.progress.run_log import RunLog

PathLike = Union[str, Path]


class SettingsSnapshotStore:
    """Reads and writes SettingsSnapshot records at a given path."""

    def __init__(self, run_log: Optional[RunLog] = None):
        self.run_log = run_log

    def _log(self, message: str) -> None:
        if self.run_log is not None:
            self.run_log.info(message)
        else:
            logger.info(message)

    def save(
        self,
        organization_name: Optional[str],
        enabled_modules: Iterable[str],
        path: PathLike,
    ) -> SettingsSnapshot:
        """
        Write a snapshot, replacing any previous one at ``path``.

        Raises:
            OSError: If the file cannot be written
        """
        path = Path(path)
        snapshot = SettingsSnapshot(
            organization_name=organization_name,
            enabled_modules=set(enabled_modules),
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
        logger.debug(f"Settings snapshot written to {path}")
        return snapshot

    def load(self, path: PathLike) -> Optional[SettingsSnapshot]:
        """
        Read a snapshot back.

        Returns:
            The snapshot, or None if there is nothing to restore

        Raises:
            RestoreError: If the file exists but cannot be read or parsed
        """
        path = Path(path)
        if not path.exists():
            self._log("Cache file for connector settings not found")
            return None

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise RestoreError(f"Cannot read settings snapshot {path}: {e}") from e

        if not content.strip():
            self._log("No connector settings found")
            return None

        try:
            return SettingsSnapshot.model_validate_json(content)
        except ValidationError as e:
            raise RestoreError(f"Settings snapshot {path} is corrupt: {e}") from e

    def discard(self, path: PathLike) -> None:
        """Delete the snapshot file if it is still there."""
        Path(path).unlink(missing_ok=True)
