"""
Collaborator interfaces consumed by the upgrader.

The package manager, package history, upload handler, provider configuration
and user table belong to the CRM platform. The upgrader only talks to them
through these narrow interfaces so any backend (local files, REST, test
doubles) can be plugged in.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

from connector_upgrader.core.models import (
    InstalledPackageRecord,
    UploadRequest,
    UploadResult,
    UserRecord,
)


class PackageRecordStore(ABC):
    """Read access to the package history."""

    @abstractmethod
    def list_installed(self, id_name: str) -> List[InstalledPackageRecord]:
        """Installed, non-deleted records for ``id_name`` in storage order."""

    def find_installed(self, id_name: str) -> Optional[InstalledPackageRecord]:
        """First installed record for ``id_name``, if any."""
        records = self.list_installed(id_name)
        return records[0] if records else None

    @abstractmethod
    def retrieve_by_id(self, record_id: str) -> Optional[InstalledPackageRecord]:
        """Record with the given id, or None."""


class PackageManager(ABC):
    """Install / uninstall transactions."""

    @abstractmethod
    def uninstall(
        self, record: InstalledPackageRecord, force_remove_custom: bool = False
    ) -> None:
        """Uninstall the package described by ``record``."""

    @abstractmethod
    def install(self, record: InstalledPackageRecord) -> InstalledPackageRecord:
        """Install a staged package and return the updated record."""


class UploadGateway(ABC):
    """Accepts a package archive and stages it."""

    @abstractmethod
    def upload(self, request: UploadRequest) -> UploadResult:
        """Stage the uploaded archive."""


class ProviderConfigStore(ABC):
    """Configuration of one connector provider and its module mapping."""

    provider_id: str

    @abstractmethod
    def get_properties(self) -> Dict[str, Any]:
        """Provider properties (organization name, credentials...)."""

    @abstractmethod
    def set_properties(self, properties: Dict[str, Any]) -> None:
        """Replace provider properties in memory."""

    @abstractmethod
    def save_config(self) -> None:
        """Persist provider properties."""

    @abstractmethod
    def get_enabled_modules(self) -> List[str]:
        """Modules the provider currently maps fields for."""

    @abstractmethod
    def get_module_mapping(self) -> Dict[str, Set[str]]:
        """Module -> provider ids shown for that module."""

    @abstractmethod
    def save_module_mapping(self, mapping: Dict[str, Set[str]]) -> bool:
        """Persist the module mapping; False if it could not be written."""

    def get_property(self, name: str, default: Any = None) -> Any:
        return self.get_properties().get(name, default)


class UserDirectory(ABC):
    """Lookup of CRM users."""

    @abstractmethod
    def find_active_user(self, user_name: str) -> Optional[UserRecord]:
        """Active, non-deleted user with this name, or None."""
