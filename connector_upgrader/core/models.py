"""
Pydantic models for records exchanged with the CRM collaborators.

These are the values read from and written to persistent storage, so they are
validated on the way in rather than trusted.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from connector_upgrader.core.enums import PackageStatus, UploadStatus


class InstalledPackageRecord(BaseModel):
    """
    One row of the package history.

    Attributes:
        id (str): Unique record identifier
        id_name (str): Stable package key shared by every version
        version (str): Version string, compared PHP style
        status (PackageStatus): Current lifecycle state
        installed_files (dict): Relative path -> sha256 of files written by install
    """

    id: str = Field(description="Unique record identifier")
    id_name: str = Field(description="Stable package key shared by every version")
    name: str = Field(default="", description="Human readable package name")
    version: str = Field(description="Package version string")
    status: PackageStatus = Field(default=PackageStatus.STAGED)
    filename: Optional[str] = Field(
        default=None, description="Staged archive location inside the instance"
    )
    deleted: bool = False
    date_entered: datetime = Field(default_factory=datetime.now)
    installed_files: Dict[str, str] = Field(default_factory=dict)

    def get_data(self) -> dict:
        """Return the record as plain data for logging."""
        return self.model_dump(mode="json", exclude={"installed_files"})


class UploadRequest(BaseModel):
    """
    Explicit description of a multipart file upload.

    Mirrors the fields a web server hands to an upload handler: the original
    file name, its MIME type, the temporary copy and its size.
    """

    name: str
    content_type: str
    temp_path: Path
    size: int = Field(ge=0)
    error: int = 0
    source_path: Optional[Path] = None


class UploadResult(BaseModel):
    """Outcome of handing an UploadRequest to the upload gateway."""

    status: UploadStatus
    staged_record_id: Optional[str] = None
    message: str = ""

    @property
    def is_staged(self) -> bool:
        return self.status == UploadStatus.STAGED and bool(self.staged_record_id)


class UserRecord(BaseModel):
    """A row of the CRM user table."""

    id: str
    user_name: str
    status: str = "Active"
    deleted: bool = False
    is_admin: bool = False


class AdminIdentity(BaseModel):
    """An administrator resolved and validated by the auth gate."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_name: str
    is_admin: bool = True


class SettingsSnapshot(BaseModel):
    """
    Provider settings that must survive an uninstall.

    Holds the organization name configured on the provider and the set of
    modules the provider was enabled for when the snapshot was taken.
    """

    organization_name: Optional[str] = None
    enabled_modules: Set[str] = Field(default_factory=set)

    @field_serializer("enabled_modules")
    def _serialize_modules(self, modules: Set[str]):
        return sorted(modules)

    def apply_to(
        self, module_providers: Dict[str, Set[str]], provider_id: str
    ) -> Dict[str, Set[str]]:
        """
        Merge the enabled-module set back into a module -> providers map.

        Only modules already present in the map are touched. A module that is
        enabled in the snapshot gains ``provider_id``; any other module loses
        it, and a module left without providers is dropped.

        Args:
            module_providers: Current module -> provider ids mapping
            provider_id: Provider to add or remove

        Returns:
            A new mapping; the input is left untouched
        """
        merged: Dict[str, Set[str]] = {}
        for module, providers in module_providers.items():
            updated = set(providers)
            if module in self.enabled_modules:
                updated.add(provider_id)
            else:
                updated.discard(provider_id)
                if not updated:
                    continue
            merged[module] = updated
        return merged
