"""
Tests for the settings snapshot and its merge into the module mapping.
"""

import pytest

from connector_upgrader.backup.settings_snapshot import SettingsSnapshotStore
from connector_upgrader.core.exceptions import RestoreError
from connector_upgrader.core.models import SettingsSnapshot

PROVIDER = "ext_rest_salesfusion"


class TestSnapshotStore:
    def test_save_and_load(self, tmp_path):
        store = SettingsSnapshotStore()
        path = tmp_path / "cache/upgrades/settings.bak"

        store.save("Acme", ["Leads", "Contacts"], path)
        snapshot = store.load(path)

        assert snapshot.organization_name == "Acme"
        assert snapshot.enabled_modules == {"Leads", "Contacts"}

    def test_snapshot_is_plain_json(self, tmp_path):
        path = tmp_path / "settings.bak"
        SettingsSnapshotStore().save("Acme", ["Leads", "Contacts"], path)
        content = path.read_text()
        assert '"organization_name": "Acme"' in content
        assert content.index("Contacts") < content.index("Leads")

    def test_save_overwrites(self, tmp_path):
        store = SettingsSnapshotStore()
        path = tmp_path / "settings.bak"
        store.save("Old", ["Leads"], path)
        store.save("New", [], path)
        snapshot = store.load(path)
        assert snapshot.organization_name == "New"
        assert snapshot.enabled_modules == set()

    def test_missing_file(self, tmp_path, run_log, log_path):
        assert SettingsSnapshotStore(run_log).load(tmp_path / "none.bak") is None
        run_log.close()
        assert "Cache file for connector settings not found" in log_path.read_text()

    def test_empty_file(self, tmp_path, run_log, log_path):
        path = tmp_path / "settings.bak"
        path.write_text("")
        assert SettingsSnapshotStore(run_log).load(path) is None
        run_log.close()
        assert "No connector settings found" in log_path.read_text()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "settings.bak"
        path.write_text("<?php $settings = array();")
        with pytest.raises(RestoreError):
            SettingsSnapshotStore().load(path)

    def test_discard(self, tmp_path):
        store = SettingsSnapshotStore()
        path = tmp_path / "settings.bak"
        store.save(None, [], path)
        store.discard(path)
        assert not path.exists()
        store.discard(path)


class TestApplyTo:
    def test_adds_and_removes_provider(self):
        snapshot = SettingsSnapshot(organization_name="Acme", enabled_modules={"Leads"})
        mapping = {
            "Leads": {"ext_rest_other"},
            "Accounts": {PROVIDER, "ext_rest_other"},
            "Contacts": {PROVIDER},
        }

        merged = snapshot.apply_to(mapping, PROVIDER)

        assert merged == {
            "Leads": {"ext_rest_other", PROVIDER},
            "Accounts": {"ext_rest_other"},
        }
        assert mapping["Contacts"] == {PROVIDER}

    def test_does_not_add_unknown_modules(self):
        snapshot = SettingsSnapshot(enabled_modules={"Opportunities"})
        assert snapshot.apply_to({"Leads": {"x"}}, PROVIDER) == {"Leads": {"x"}}

    def test_idempotent(self):
        snapshot = SettingsSnapshot(enabled_modules={"Leads", "Contacts"})
        mapping = {
            "Leads": {"ext_rest_other"},
            "Contacts": {PROVIDER},
            "Accounts": {PROVIDER},
        }
        once = snapshot.apply_to(mapping, PROVIDER)
        assert snapshot.apply_to(once, PROVIDER) == once
