"""
File-backed CRM collaborators.

Implements every collaborator interface on top of plain files inside an
instance directory, so an upgrade can run end to end without a live CRM:

    <instance>/db/upgrade_history.json      package history records
    <instance>/db/users.json                user table
    <instance>/upload/upgrades/module/      staged package archives
    <connector dir>/sources/ext/rest/<provider>/config.json
                                            provider properties and mapping
    custom/modules/Connectors/metadata/display_config.json
                                            module -> providers mapping

Package archives are zip files with a ``manifest.json`` (``id_name``,
``version``, optional ``name``) and a ``files/`` tree copied into the instance
on install.
"""

import hashlib
import json
import os
import shutil
import uuid
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Set

from loguru import logger
from pydantic import ValidationError

from connector_upgrader.core.config import Settings
from connector_upgrader.core.constants import (
    ALLOWED_PACKAGE_EXTENSIONS,
    HISTORY_FILE,
    PACKAGE_FILES_ROOT,
    PACKAGE_MANIFEST_NAME,
    PROVIDER_CONFIG_NAME,
    UPLOAD_DIR,
    USERS_FILE,
)
from connector_upgrader.core.enums import PackageStatus, UploadStatus
from connector_upgrader.core.exceptions import UninstallError
from connector_upgrader.core.models import (
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


# =============================================================================
# SECTION 1: FILE HELPERS
# =============================================================================


def read_json(path: Path, default: Any) -> Any:
    """Load JSON from ``path``, returning ``default`` if the file is missing."""
    if not path.exists():
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path, data: Any) -> None:
    """Write JSON through a temp file and rename so readers never see half a file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
    os.replace(tmp_path, path)


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def read_manifest(archive: zipfile.ZipFile) -> Dict[str, Any]:
    """
    Read and check the package manifest.

    Raises:
        ValueError: If the manifest is missing or lacks id_name/version
    """
    try:
        manifest = json.loads(archive.read(PACKAGE_MANIFEST_NAME))
    except KeyError:
        raise ValueError(f"{PACKAGE_MANIFEST_NAME} not found in package")
    except json.JSONDecodeError as e:
        raise ValueError(f"{PACKAGE_MANIFEST_NAME} is not valid JSON: {e}")

    if not isinstance(manifest, dict):
        raise ValueError(f"{PACKAGE_MANIFEST_NAME} must be an object")
    for key in ("id_name", "version"):
        if not manifest.get(key):
            raise ValueError(f"{PACKAGE_MANIFEST_NAME} is missing '{key}'")
    return manifest


# =============================================================================
# SECTION 2: PACKAGE HISTORY
# =============================================================================


class LocalPackageHistory(PackageRecordStore):
    """Package history kept as a JSON list, in insertion order."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> List[InstalledPackageRecord]:
        rows = read_json(self.path, [])
        return [InstalledPackageRecord.model_validate(row) for row in rows]

    def save(self, records: List[InstalledPackageRecord]) -> None:
        write_json(self.path, [record.model_dump(mode="json") for record in records])

    def list_installed(self, id_name: str) -> List[InstalledPackageRecord]:
        return [
            record
            for record in self.load()
            if record.id_name == id_name
            and record.status == PackageStatus.INSTALLED
            and not record.deleted
        ]

    def retrieve_by_id(self, record_id: str) -> Optional[InstalledPackageRecord]:
        for record in self.load():
            if record.id == record_id and not record.deleted:
                return record
        return None

    def add(self, record: InstalledPackageRecord) -> None:
        records = self.load()
        records.append(record)
        self.save(records)

    def update(self, record: InstalledPackageRecord) -> None:
        records = self.load()
        for index, existing in enumerate(records):
            if existing.id == record.id:
                records[index] = record
                break
        else:
            records.append(record)
        self.save(records)


# =============================================================================
# SECTION 3: PACKAGE MANAGER
# =============================================================================


class LocalPackageManager(PackageManager):
    """
    Installs package archives by copying their ``files/`` tree into the instance.

    Installed file hashes are kept on the record. On uninstall a file whose
    content changed since install is a customisation: it is kept unless
    ``force_remove_custom`` is set.
    """

    def __init__(self, layout: InstanceLayout, history: LocalPackageHistory):
        self.layout = layout
        self.history = history

    def uninstall(
        self, record: InstalledPackageRecord, force_remove_custom: bool = False
    ) -> None:
        logger.info(f"Uninstalling {record.id_name} {record.version}")
        kept = []
        try:
            for relative, installed_hash in record.installed_files.items():
                target = self.layout.resolve_write(relative)
                if not target.is_file():
                    continue
                if not force_remove_custom and file_sha256(target) != installed_hash:
                    kept.append(relative)
                    continue
                target.unlink()
        except (OSError, ValueError) as e:
            raise UninstallError(
                f"Failed to uninstall package {record.id_name}: {e}"
            ) from e

        if kept:
            logger.warning(f"⚠️ Kept customised files: {', '.join(sorted(kept))}")

        record.status = PackageStatus.UNINSTALLED
        record.installed_files = {}
        self.history.update(record)

    def install(self, record: InstalledPackageRecord) -> InstalledPackageRecord:
        logger.info(f"Installing {record.id_name} {record.version}")
        written: Dict[str, str] = {}
        try:
            self._extract(record, written)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            logger.error(f"❌ Install of {record.id_name} failed: {e}")
            self._discard_partial(written)
            record.installed_files = {}
            record.status = PackageStatus.FAILED
            self.history.update(record)
            return record

        record.installed_files = written
        records = self.history.load()
        for other in records:
            if (
                other.id != record.id
                and other.id_name == record.id_name
                and other.status == PackageStatus.INSTALLED
            ):
                other.status = PackageStatus.UNINSTALLED
        record.status = PackageStatus.INSTALLED
        self.history.save([record if r.id == record.id else r for r in records])
        logger.info(f"✅ Installed {record.id_name} {record.version}")
        return record

    def _extract(self, record: InstalledPackageRecord, written: Dict[str, str]) -> None:
        """
        Copy the archive's ``files/`` tree into the instance.

        Every file is added to ``written`` as soon as it is opened for
        writing, so a failure part way through leaves an exact list of what
        has to be removed again.
        """
        if not record.filename:
            raise ValueError(f"Package {record.id} has no staged archive")
        archive_path = self.layout.resolve_read(record.filename)

        with zipfile.ZipFile(archive_path) as archive:
            for member in archive.infolist():
                if member.is_dir() or not member.filename.startswith(PACKAGE_FILES_ROOT):
                    continue
                relative = PurePosixPath(member.filename[len(PACKAGE_FILES_ROOT):])
                target = self.layout.resolve_write(relative)
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(member) as src, open(target, "wb") as dst:
                    written[str(relative)] = ""
                    shutil.copyfileobj(src, dst)
                written[str(relative)] = file_sha256(target)

    def _discard_partial(self, written: Dict[str, str]) -> None:
        """Remove the files a failed install already wrote."""
        for relative in written:
            target = self.layout.resolve_write(relative)
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"❌ Could not remove partially installed {target}: {e}")
        if written:
            logger.warning(
                f"⚠️ Removed {len(written)} partially installed file(s): "
                f"{', '.join(sorted(written))}"
            )


# =============================================================================
# SECTION 4: UPLOAD GATEWAY
# =============================================================================


class LocalUploadGateway(UploadGateway):
    """Validates an uploaded archive and stages it in the instance upload dir."""

    def __init__(self, layout: InstanceLayout, history: LocalPackageHistory):
        self.layout = layout
        self.history = history

    def upload(self, request: UploadRequest) -> UploadResult:
        if request.error:
            return UploadResult(
                status=UploadStatus.ERROR, message=f"Upload error code {request.error}"
            )

        suffix = Path(request.name).suffix.lower()
        if suffix not in ALLOWED_PACKAGE_EXTENSIONS:
            allowed = ", ".join(sorted(ALLOWED_PACKAGE_EXTENSIONS))
            return UploadResult(
                status=UploadStatus.REJECTED,
                message=f"File extension '{suffix}' is not allowed. Allowed extensions: {allowed}",
            )

        try:
            with zipfile.ZipFile(request.temp_path) as archive:
                manifest = read_manifest(archive)
        except (zipfile.BadZipFile, ValueError) as e:
            logger.warning(f"⚠️ Rejected upload {request.name}: {e}")
            return UploadResult(status=UploadStatus.REJECTED, message=str(e))
        except OSError as e:
            return UploadResult(status=UploadStatus.ERROR, message=str(e))

        # the record id keeps staged archives with the same name apart
        record_id = str(uuid.uuid4())
        relative = PurePosixPath(UPLOAD_DIR) / f"{record_id}-{Path(request.name).name}"
        try:
            destination = self.layout.resolve_write(relative)
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(request.temp_path), str(destination))
        except OSError as e:
            logger.error(f"❌ Could not stage {request.name}: {e}")
            return UploadResult(status=UploadStatus.ERROR, message=str(e))

        record = InstalledPackageRecord(
            id=record_id,
            id_name=manifest["id_name"],
            name=manifest.get("name", manifest["id_name"]),
            version=str(manifest["version"]),
            status=PackageStatus.STAGED,
            filename=str(relative),
        )
        self.history.add(record)
        logger.info(f"Staged {record.id_name} {record.version} as {record.id}")
        return UploadResult(status=UploadStatus.STAGED, staged_record_id=record.id)


# =============================================================================
# SECTION 5: PROVIDER CONFIGURATION
# =============================================================================


class LocalProviderConfig(ProviderConfigStore):
    """
    Provider config file plus the shared module display mapping.

    Properties are read from disk on every access unless there are unsaved
    changes, because install and uninstall replace the config file underneath.
    """

    def __init__(self, layout: InstanceLayout, settings: Settings):
        self.layout = layout
        self.provider_id = settings.target_key
        self.config_file = (
            f"{settings.connector_dir}/sources/"
            f"{settings.stale_extension_path}/{PROVIDER_CONFIG_NAME}"
        )
        self.display_config_file = settings.display_config_file
        self._pending: Optional[Dict[str, Any]] = None

    def _read_config(self) -> Dict[str, Any]:
        return read_json(self.layout.resolve_read(self.config_file), {})

    def get_properties(self) -> Dict[str, Any]:
        if self._pending is not None:
            return dict(self._pending)
        return dict(self._read_config().get("properties", {}))

    def set_properties(self, properties: Dict[str, Any]) -> None:
        self._pending = dict(properties)

    def save_config(self) -> None:
        if self._pending is None:
            return
        config = self._read_config()
        config["properties"] = self._pending
        write_json(self.layout.resolve_write(self.config_file), config)
        self._pending = None

    def get_enabled_modules(self) -> List[str]:
        mapping = self._read_config().get("mapping", {})
        return list(mapping.get("beans", {}).keys())

    def get_module_mapping(self) -> Dict[str, Set[str]]:
        data = read_json(self.layout.resolve_read(self.display_config_file), {})
        modules_sources = data.get("modules_sources", {})
        return {module: set(sources) for module, sources in modules_sources.items()}

    def save_module_mapping(self, mapping: Dict[str, Set[str]]) -> bool:
        data = {
            "modules_sources": {
                module: sorted(sources) for module, sources in sorted(mapping.items())
            }
        }
        try:
            write_json(self.layout.resolve_write(self.display_config_file), data)
        except OSError as e:
            logger.error(f"❌ Cannot write module mapping: {e}")
            return False
        return True


# =============================================================================
# SECTION 6: USERS
# =============================================================================


class LocalUserDirectory(UserDirectory):
    """User table kept as a JSON list."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def find_active_user(self, user_name: str) -> Optional[UserRecord]:
        for row in read_json(self.path, []):
            try:
                user = UserRecord.model_validate(row)
            except ValidationError as e:
                logger.warning(f"⚠️ Skipping malformed user row: {e}")
                continue
            if user.user_name == user_name and user.status == "Active" and not user.deleted:
                return user
        return None


# =============================================================================
# SECTION 7: INSTANCE FACADE
# =============================================================================


class LocalInstance:
    """All file-backed collaborators for one instance."""

    def __init__(self, layout: InstanceLayout, settings: Settings):
        self.layout = layout
        self.settings = settings
        db_root = layout.instance_path
        self.history = LocalPackageHistory(db_root / HISTORY_FILE)
        self.users = LocalUserDirectory(db_root / USERS_FILE)
        self.package_manager = LocalPackageManager(layout, self.history)
        self.upload_gateway = LocalUploadGateway(layout, self.history)
        self.provider_config = LocalProviderConfig(layout, settings)
