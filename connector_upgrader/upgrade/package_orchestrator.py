"""
Connector package upgrade orchestration.

Runs one upgrade of the installed connector package against a CRM instance:
locate the installed record, snapshot the provider settings, back up legacy
connector files when the installed version predates the current file layout,
uninstall, restore the backed-up files, upload and install the new package and
finally re-apply the saved settings.

Every step is written to the run log in order. A failing step aborts the run
with an UpgradeError subclass; directory copy failures and settings restore
problems are logged and recorded as warnings instead.
"""

import time
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Type, Union

from loguru import logger

from connector_upgrader.backup.file_backup_store import FileBackupStore
from connector_upgrader.backup.settings_snapshot import SettingsSnapshotStore
from connector_upgrader.core.config import Settings
from connector_upgrader.core.dataclasses import UpgradeResult
from connector_upgrader.core.enums import OperationStatus, PackageStatus, UpgradePhase
from connector_upgrader.core.exceptions import (
    AdminNotFoundError,
    InstallError,
    NotInstalledError,
    RestoreError,
    RetrieveFailedError,
    UninstallError,
    UpgradeError,
    UploadError,
)
from connector_upgrader.core.models import (
    AdminIdentity,
    InstalledPackageRecord,
    SettingsSnapshot,
    UploadResult,
)
from connector_upgrader.data_access.instance_layout import InstanceLayout
from connector_upgrader.data_access.interfaces import (
    PackageManager,
    PackageRecordStore,
    ProviderConfigStore,
    UploadGateway,
)
from connector_upgrader.progress.run_log import RunLog
from connector_upgrader.upgrade.upload_request import build_upload_request
from connector_upgrader.validation.version_manager import needs_legacy_backup


# =============================================================================
# SECTION 1: ORCHESTRATOR
# =============================================================================


class PackageOrchestrator:
    """
    Sequences the upgrade of one installed connector package.

    Collaborators are injected so the same sequence runs against the local
    instance backend, a REST upload endpoint or test doubles.

    Attributes:
        result (UpgradeResult): Step trace of the most recent run
    """

    # =========================================================================
    # SUBSECTION 1.1: INITIALIZATION
    # =========================================================================

    def __init__(
        self,
        settings: Settings,
        layout: InstanceLayout,
        records: PackageRecordStore,
        package_manager: PackageManager,
        upload_gateway: UploadGateway,
        provider_config: ProviderConfigStore,
        run_log: RunLog,
        admin: Optional[AdminIdentity],
        backup_store: Optional[FileBackupStore] = None,
        snapshot_store: Optional[SettingsSnapshotStore] = None,
    ):
        """
        Args:
            settings: Run settings (target key, threshold, paths)
            layout: Path resolution for the instance
            records: Package history
            package_manager: Install / uninstall transactions
            upload_gateway: Stages the new archive
            provider_config: Connector provider configuration
            run_log: Open run log for this upgrade
            admin: Identity returned by the auth gate; None refuses the run
            backup_store: Directory backup helper
            snapshot_store: Settings snapshot persistence
        """
        self.settings = settings
        self.layout = layout
        self.records = records
        self.package_manager = package_manager
        self.upload_gateway = upload_gateway
        self.provider_config = provider_config
        self.run_log = run_log
        self.admin = admin
        self.backup_store = backup_store or FileBackupStore(run_log)
        self.snapshot_store = snapshot_store or SettingsSnapshotStore(run_log)
        self.result = UpgradeResult(target_key=settings.target_key)

    @property
    def connector_dir(self) -> Path:
        return self.layout.resolve_write(self.settings.connector_dir)

    @property
    def backup_dir(self) -> Path:
        return self.layout.resolve_write(self.settings.backup_dir)

    @property
    def snapshot_path(self) -> Path:
        return self.layout.resolve_write(self.settings.snapshot_file)

    @contextmanager
    def _step_failure(self, error_cls: Type[UpgradeError], prefix: str):
        """Re-raise collaborator failures as ``error_cls``."""
        try:
            yield
        except UpgradeError:
            raise
        except Exception as e:
            raise error_cls(f"{prefix}: {e}") from e

    # =========================================================================
    # SUBSECTION 1.2: MAIN UPGRADE SEQUENCE
    # =========================================================================

    def upgrade(
        self, package_path: Union[str, Path], target_key: Optional[str] = None
    ) -> InstalledPackageRecord:
        """
        Upgrade the installed connector package to ``package_path``.

        Args:
            package_path: New package archive
            target_key: Package key to upgrade; defaults to the configured key

        Returns:
            The installed record of the new package

        Raises:
            AdminNotFoundError: If no administrator identity was supplied
            NotInstalledError: If no installed record matches the key
            UninstallError: If the old package cannot be uninstalled
            UploadError: If the new package cannot be copied or staged
            RetrieveFailedError: If the staged record cannot be loaded
            InstallError: If the staged package does not install
            UpgradeError: For any other failure, wrapped
        """
        key = target_key or self.settings.target_key
        self.result = UpgradeResult(target_key=key, start_time=time.time())

        if self.admin is None or not self.admin.is_admin:
            raise AdminNotFoundError("Admin user not found.")

        try:
            installed = self._run(Path(package_path), key)
            self.result.success = True
            self.result.add_step(UpgradePhase.COMPLETED, "Upgrade completed")
            logger.success(
                f"✅ Upgraded {key}: {self.result.initial_version} -> "
                f"{self.result.final_version}"
            )
            return installed

        except UpgradeError as e:
            self._record_failure(e.message)
            raise
        except Exception as e:
            message = f"Failed to upgrade connector package: {e}"
            self._record_failure(message)
            raise UpgradeError(message) from e
        finally:
            self.result.end_time = time.time()
            self.result.calculate_duration()

    def _run(self, package_path: Path, key: str) -> InstalledPackageRecord:
        installed = self.find_installed(key)

        self.save_settings()

        legacy = needs_legacy_backup(installed.version, self.settings.legacy_threshold)
        if legacy:
            self.backup_connector_files()

        self.uninstall(installed)

        if legacy:
            self.restore_connector_files()

        staged = self.upload_and_retrieve(package_path)
        new_record = self.install(staged)

        try:
            self.restore_settings()
        except RestoreError as e:
            self.run_log.warning(e.message)
            self.result.add_warning(e.message)
            self.result.add_step(
                UpgradePhase.RESTORING_SETTINGS, e.message, OperationStatus.WARNING
            )

        return new_record

    def _record_failure(self, message: str) -> None:
        logger.error(f"❌ {message}")
        self.result.error = message
        self.result.add_step(UpgradePhase.FAILED, message, OperationStatus.FAILED)

    # =========================================================================
    # SUBSECTION 1.3: INDIVIDUAL STEPS
    # =========================================================================

    def find_installed(self, key: str) -> InstalledPackageRecord:
        """
        Locate the installed record for ``key``.

        When several records are installed the first in storage order wins and
        the ambiguity is written to the run log.

        Raises:
            NotInstalledError: If nothing is installed under ``key``
        """
        self.result.add_step(UpgradePhase.LOOKUP, f"Looking up installed {key}")
        records: List[InstalledPackageRecord] = self.records.list_installed(key)
        if not records:
            raise NotInstalledError("No installed connector package found.")

        installed = records[0]
        if len(records) > 1:
            others = ", ".join(f"{r.id} ({r.version})" for r in records[1:])
            message = (
                f"Multiple installed records found for {key}; "
                f"using {installed.id} ({installed.version}), ignoring {others}"
            )
            self.run_log.warning(message)
            self.result.add_warning(message)

        self.run_log.info(f"Installed connector package found: {installed.version}")
        self.result.initial_version = installed.version
        return installed

    def save_settings(self) -> SettingsSnapshot:
        """Snapshot the organization name and enabled modules before uninstall."""
        self.result.add_step(UpgradePhase.SNAPSHOT, "Saving connector settings")
        self.run_log.info("Backup connector settings")
        with self._step_failure(UpgradeError, "Failed to save connector settings"):
            organization_name = self.provider_config.get_property("organization_name")
            modules = self.provider_config.get_enabled_modules()
            return self.snapshot_store.save(
                organization_name, modules, self.snapshot_path
            )

    def backup_connector_files(self) -> None:
        """Copy every existing backup subdirectory of the connector tree aside."""
        self.result.add_step(UpgradePhase.BACKUP, "Backing up connector files")
        self.result.legacy_backup_taken = True
        self.run_log.info("Backup connector files")

        for sub in self.settings.backup_subdirs:
            source = self.connector_dir / sub
            if not source.is_dir():
                continue
            self.run_log.info(f"Backup connector dir: {source}")
            if not self.backup_store.backup(source, self.backup_dir / sub):
                self.result.add_warning(f"Failed to backup connector dir: {source}")

    def uninstall(self, installed: InstalledPackageRecord) -> None:
        self.result.add_step(
            UpgradePhase.UNINSTALLING, f"Uninstalling {installed.version}"
        )
        self.run_log.info("Uninstall connector package")
        with self._step_failure(UninstallError, "Failed to uninstall package"):
            self.package_manager.uninstall(installed, force_remove_custom=False)

    def restore_connector_files(self) -> None:
        """
        Put backed-up connector files back and drop the legacy extension.

        Each subdirectory is restored on its own; the legacy provider
        extension is then removed from every subdirectory, and the backup
        root is deleted once it is empty.
        """
        self.result.add_step(UpgradePhase.RESTORING_FILES, "Restoring connector files")
        self.run_log.info("Restore connector files")

        for sub in self.settings.backup_subdirs:
            backup = self.backup_dir / sub
            target = self.connector_dir / sub
            if backup.is_dir():
                self.run_log.info(f"Restore connector dir: {backup}")
                if not self.backup_store.restore(backup, target):
                    self.result.add_warning(
                        f"Backup directory not restored and removed: {backup}"
                    )

            stale = target / self.settings.stale_extension_path
            if stale.is_dir():
                self.run_log.info(f"Delete legacy connector dir: {stale}")
                self.backup_store.remove_tree(stale)

        self.backup_store.prune_if_empty(self.backup_dir)

    def upload_and_retrieve(self, package_path: Path) -> InstalledPackageRecord:
        """
        Upload the new archive and load the staged record it produced.

        Raises:
            UploadError: If the archive is not staged
            RetrieveFailedError: If the staged record cannot be loaded
        """
        result = self.upload(package_path)
        if not result.is_staged:
            if result.message:
                self.run_log.error(result.message)
            raise UploadError("Failed to upload package.")

        with self._step_failure(
            RetrieveFailedError, "Failed to retrieve upgrade history for package"
        ):
            staged = self.records.retrieve_by_id(result.staged_record_id)
        if staged is None or not staged.id:
            raise RetrieveFailedError("Failed to retrieve upgrade history for package.")
        return staged

    def upload(self, package_path: Path) -> UploadResult:
        self.result.add_step(UpgradePhase.UPLOADING, f"Uploading {package_path.name}")
        self.run_log.info("Upload connector package")
        request = build_upload_request(package_path)
        try:
            with self._step_failure(UploadError, "Failed to upload package"):
                return self.upload_gateway.upload(request)
        finally:
            # a gateway that stages the archive moves the temp copy away
            request.temp_path.unlink(missing_ok=True)

    def install(self, staged: InstalledPackageRecord) -> InstalledPackageRecord:
        """
        Install the staged package.

        Raises:
            InstallError: If the record does not come back installed
        """
        self.result.add_step(UpgradePhase.INSTALLING, f"Installing {staged.version}")
        self.run_log.info("Install connector package")
        with self._step_failure(InstallError, "Failed to install package"):
            record = self.package_manager.install(staged)

        status = PackageStatus(record.status)
        if status != PackageStatus.INSTALLED:
            raise InstallError(f"Failed to install package: {status.value}")

        self.run_log.info(f"Installed connector package: {record.get_data()}")
        self.result.final_version = record.version
        return record

    def restore_settings(self) -> bool:
        """
        Re-apply the saved settings to the freshly installed provider.

        Returns:
            True if a snapshot was applied, False if there was nothing to apply

        Raises:
            RestoreError: If the snapshot is unreadable or cannot be applied
        """
        self.result.add_step(
            UpgradePhase.RESTORING_SETTINGS, "Restoring connector settings"
        )
        self.run_log.info("Restore connector settings")

        snapshot = self.snapshot_store.load(self.snapshot_path)
        if snapshot is None:
            self.snapshot_store.discard(self.snapshot_path)
            return False

        with self._step_failure(RestoreError, "Failed to restore connector settings"):
            properties = dict(self.provider_config.get_properties())
            properties["organization_name"] = snapshot.organization_name
            self.provider_config.set_properties(properties)
            self.provider_config.save_config()

            mapping = snapshot.apply_to(
                self.provider_config.get_module_mapping(),
                self.provider_config.provider_id,
            )
            if not self.provider_config.save_module_mapping(mapping):
                self.run_log.info(
                    f"Cannot write module mapping to {self.settings.display_config_file}"
                )

        self.snapshot_store.discard(self.snapshot_path)
        self.result.settings_restored = True
        return True
