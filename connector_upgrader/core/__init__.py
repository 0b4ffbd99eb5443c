"""
Core package for the connector upgrader.

Contains fundamental data structures, settings, constants, enumerations, and
exceptions used throughout the upgrade run.
"""

from .config import Settings, load_settings
from .dataclasses import UpgradeResult, UpgradeStep
from .enums import (
    DeploymentMode,
    OperationStatus,
    PackageStatus,
    UpgradePhase,
    UploadStatus,
)
from .exceptions import (
    AdminNotFoundError,
    BackupError,
    InstallError,
    NotInstalledError,
    PreconditionError,
    RestoreError,
    RetrieveFailedError,
    UninstallError,
    UpgradeError,
    UploadError,
    UsageError,
)
from .models import (
    AdminIdentity,
    InstalledPackageRecord,
    SettingsSnapshot,
    UploadRequest,
    UploadResult,
    UserRecord,
)

__all__ = [
    # Settings
    "Settings",
    "load_settings",
    # Data classes
    "UpgradeResult",
    "UpgradeStep",
    # Enums
    "DeploymentMode",
    "OperationStatus",
    "PackageStatus",
    "UpgradePhase",
    "UploadStatus",
    # Exceptions
    "AdminNotFoundError",
    "BackupError",
    "InstallError",
    "NotInstalledError",
    "PreconditionError",
    "RestoreError",
    "RetrieveFailedError",
    "UninstallError",
    "UpgradeError",
    "UploadError",
    "UsageError",
    # Models
    "AdminIdentity",
    "InstalledPackageRecord",
    "SettingsSnapshot",
    "UploadRequest",
    "UploadResult",
    "UserRecord",
]
