"""
Application enumerations for type safety and clear intent definitions.

Centralized enum definitions for package states, upload outcomes, run phases
and deployment modes used throughout the upgrader.
"""

from enum import Enum


class PackageStatus(str, Enum):
    """Lifecycle states of a package history record."""

    INSTALLED = "installed"
    STAGED = "staged"
    UNINSTALLED = "uninstalled"
    FAILED = "failed"


class UploadStatus(str, Enum):
    """Outcome reported by the upload gateway."""

    STAGED = "staged"
    REJECTED = "rejected"
    ERROR = "error"


class UpgradePhase(Enum):
    """Phases of the upgrade run."""

    LOOKUP = "lookup"
    SNAPSHOT = "snapshot"
    BACKUP = "backup"
    UNINSTALLING = "uninstalling"
    RESTORING_FILES = "restoring_files"
    UPLOADING = "uploading"
    INSTALLING = "installing"
    RESTORING_SETTINGS = "restoring_settings"
    COMPLETED = "completed"
    FAILED = "failed"


class OperationStatus(Enum):
    """Status of operations and steps."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    WARNING = "warning"


class DeploymentMode(str, Enum):
    """How the instance files are laid out on disk."""

    DIRECT = "direct"
    SHADOWED = "shadowed"
