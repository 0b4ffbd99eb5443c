"""
Custom exception classes for upgrade operations.

Provides hierarchical exception handling for granular error categorization.
Every error carries the process exit code the CLI should return for it.
"""

from connector_upgrader.core.constants import EXIT_FAILURE, EXIT_USAGE


class UpgradeError(Exception):
    """Base exception for all upgrade-related errors"""

    exit_code = EXIT_FAILURE

    def __init__(self, message: str, remediation: str = None):
        self.message = message
        self.remediation = remediation
        super().__init__(self.message)


class UsageError(UpgradeError):
    """Raised when command-line input is missing or malformed"""

    exit_code = EXIT_USAGE


class PreconditionError(UpgradeError):
    """Raised when an input path, log file or identity is not usable"""

    pass


class AdminNotFoundError(PreconditionError):
    """Raised when the acting user is not an active administrator"""

    pass


class NotInstalledError(UpgradeError):
    """Raised when no installed package matches the target key"""

    pass


class BackupError(UpgradeError):
    """Raised when a single directory backup or restore copy fails"""

    pass


class UninstallError(UpgradeError):
    """Raised when the package manager cannot uninstall the old package"""

    pass


class UploadError(UpgradeError):
    """Raised when the new package cannot be uploaded or staged"""

    pass


class RetrieveFailedError(UpgradeError):
    """Raised when the staged package record cannot be loaded"""

    pass


class InstallError(UpgradeError):
    """Raised when the staged package does not end up installed"""

    pass


class RestoreError(UpgradeError):
    """Raised when saved settings cannot be read back or re-applied"""

    pass
