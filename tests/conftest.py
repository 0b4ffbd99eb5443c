"""
Pytest configuration for the connector upgrader test suite.

Provides in-memory fakes for every CRM collaborator and a populated local
instance with connector 2.0 installed.
"""

import json
import sys
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

# Add the project root directory to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from connector_upgrader.core.config import Settings
from connector_upgrader.core.constants import CONNECTOR_DIR, DISPLAY_CONFIG_FILE
from connector_upgrader.core.enums import PackageStatus, UploadStatus
from connector_upgrader.core.models import (
    AdminIdentity,
    InstalledPackageRecord,
    UploadRequest,
    UploadResult,
    UserRecord,
)
from connector_upgrader.data_access.instance_layout import InstanceLayout
from connector_upgrader.data_access.interfaces import (
    PackageManager,
    PackageRecordStore,
    ProviderConfigStore,
    UploadGateway,
    UserDirectory,
)
from connector_upgrader.data_access.local_instance import LocalInstance, write_json
from connector_upgrader.progress.run_log import RunLog

TARGET_KEY = "ext_rest_salesfusion"
OTHER_PROVIDER = "ext_rest_other"
SOURCE_DIR = f"{CONNECTOR_DIR}/sources/ext/rest/salesfusion"
FORMATTER_DIR = f"{CONNECTOR_DIR}/formatters/ext/rest/salesfusion"


# =============================================================================
# PACKAGE ARCHIVES
# =============================================================================


def build_package(
    path: Path,
    version: str,
    files: Dict[str, str],
    id_name: str = TARGET_KEY,
) -> Path:
    """Write a connector package zip with a manifest and a files/ tree."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr(
            "manifest.json",
            json.dumps({"id_name": id_name, "version": version, "name": "Connector"}),
        )
        for relative, content in files.items():
            archive.writestr(f"files/{relative}", content)
    return path


def connector_files(
    version: str, beans: List[str], formatter: bool = False
) -> Dict[str, str]:
    config = {
        "properties": {"organization_name": ""},
        "mapping": {"beans": {bean: {} for bean in beans}},
    }
    files = {
        f"{SOURCE_DIR}/config.json": json.dumps(config),
        f"{SOURCE_DIR}/connector.php": f"<?php // connector {version}\n",
    }
    if formatter:
        files[f"{FORMATTER_DIR}/formatter.php"] = f"<?php // formatter {version}\n"
    return files


@pytest.fixture
def package_factory(tmp_path):
    """Build connector package zips under tmp_path/packages."""

    def factory(
        version: str,
        beans: Optional[List[str]] = None,
        name: str = None,
        formatter: bool = False,
    ):
        beans = beans or ["Leads", "Accounts"]
        filename = name or f"Connector-{version}.zip"
        files = connector_files(version, beans, formatter)
        return build_package(tmp_path / "packages" / filename, version, files)

    return factory


# =============================================================================
# IN-MEMORY COLLABORATORS
# =============================================================================


class FakeRecords(PackageRecordStore):
    def __init__(self, records: List[InstalledPackageRecord] = None):
        self.records = list(records or [])

    def list_installed(self, id_name):
        return [
            r
            for r in self.records
            if r.id_name == id_name and r.status == PackageStatus.INSTALLED
        ]

    def retrieve_by_id(self, record_id):
        for record in self.records:
            if record.id == record_id:
                return record
        return None


class FakePackageManager(PackageManager):
    def __init__(self, install_status: PackageStatus = PackageStatus.INSTALLED):
        self.install_status = install_status
        self.calls: List[tuple] = []

    def uninstall(self, record, force_remove_custom=False):
        self.calls.append(("uninstall", record.id, force_remove_custom))
        record.status = PackageStatus.UNINSTALLED

    def install(self, record):
        self.calls.append(("install", record.id))
        return record.model_copy(update={"status": self.install_status})


class FakeUploadGateway(UploadGateway):
    def __init__(self, records: FakeRecords, status=UploadStatus.STAGED, version="2.2"):
        self.records = records
        self.status = status
        self.version = version
        self.requests: List[UploadRequest] = []

    def upload(self, request):
        self.requests.append(request)
        if self.status != UploadStatus.STAGED:
            return UploadResult(status=self.status, message="rejected by fake")
        staged = InstalledPackageRecord(
            id="staged-1", id_name=TARGET_KEY, version=self.version
        )
        self.records.records.append(staged)
        return UploadResult(status=UploadStatus.STAGED, staged_record_id=staged.id)


class FakeProviderConfig(ProviderConfigStore):
    def __init__(
        self,
        properties: Dict = None,
        enabled_modules: List[str] = None,
        mapping: Dict[str, Set[str]] = None,
        mapping_writable: bool = True,
    ):
        self.provider_id = TARGET_KEY
        self.properties = dict(properties or {})
        self.saved_properties: Optional[Dict] = None
        self.enabled_modules = list(enabled_modules or [])
        self.mapping = {k: set(v) for k, v in (mapping or {}).items()}
        self.mapping_writable = mapping_writable

    def get_properties(self):
        return dict(self.properties)

    def set_properties(self, properties):
        self.properties = dict(properties)

    def save_config(self):
        self.saved_properties = dict(self.properties)

    def get_enabled_modules(self):
        return list(self.enabled_modules)

    def get_module_mapping(self):
        return {k: set(v) for k, v in self.mapping.items()}

    def save_module_mapping(self, mapping):
        if not self.mapping_writable:
            return False
        self.mapping = mapping
        return True


class FakeUsers(UserDirectory):
    def __init__(self, users: List[UserRecord] = None):
        self.users = list(users or [])

    def find_active_user(self, user_name):
        for user in self.users:
            if user.user_name == user_name and user.status == "Active" and not user.deleted:
                return user
        return None


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(target_key=TARGET_KEY, upload_url=None, upload_token=None)


@pytest.fixture
def admin() -> AdminIdentity:
    return AdminIdentity(id="1", user_name="admin")


@pytest.fixture
def instance_dir(tmp_path) -> Path:
    path = tmp_path / "crm"
    path.mkdir()
    return path


@pytest.fixture
def layout(instance_dir) -> InstanceLayout:
    return InstanceLayout(instance_dir)


@pytest.fixture
def log_path(tmp_path) -> Path:
    return tmp_path / "logs" / "upgrade.log"


@pytest.fixture
def run_log(log_path):
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with RunLog(log_path) as log:
        yield log


def write_users(instance_dir: Path, users: List[dict]) -> None:
    write_json(instance_dir / "db" / "users.json", users)


@pytest.fixture
def local_instance(instance_dir, settings, package_factory) -> LocalInstance:
    """
    Instance with connector 2.0 installed and customised.

    The organization name was filled in after install, a second connector
    shares the sources/formatters trees and the module display mapping lists
    both providers.
    """
    layout = InstanceLayout(instance_dir)
    instance = LocalInstance(layout, settings)

    old_package = package_factory("2.0", beans=["Leads", "Contacts"], formatter=True)
    staged = instance.layout.resolve_write("upload/upgrades/module/Connector-2.0.zip")
    staged.parent.mkdir(parents=True, exist_ok=True)
    staged.write_bytes(old_package.read_bytes())
    record = InstalledPackageRecord(
        id="old-1",
        id_name=TARGET_KEY,
        version="2.0",
        filename="upload/upgrades/module/Connector-2.0.zip",
    )
    instance.history.add(record)
    instance.package_manager.install(record)

    config_path = instance_dir / SOURCE_DIR / "config.json"
    config = json.loads(config_path.read_text())
    config["properties"]["organization_name"] = "Acme"
    config_path.write_text(json.dumps(config))

    other_source = instance_dir / CONNECTOR_DIR / "sources/ext/rest/other"
    other_source.mkdir(parents=True)
    (other_source / "config.json").write_text('{"properties": {}}')
    other_formatter = instance_dir / CONNECTOR_DIR / "formatters/ext/rest/other"
    other_formatter.mkdir(parents=True)
    (other_formatter / "formatter.php").write_text("<?php // other\n")

    write_json(
        instance_dir / DISPLAY_CONFIG_FILE,
        {
            "modules_sources": {
                "Leads": [TARGET_KEY, OTHER_PROVIDER],
                "Contacts": [TARGET_KEY],
                "Accounts": [TARGET_KEY],
            }
        },
    )
    write_users(
        instance_dir,
        [
            {"id": "1", "user_name": "admin", "status": "Active", "is_admin": True},
            {"id": "2", "user_name": "jim", "status": "Active", "is_admin": False},
        ],
    )
    return instance
