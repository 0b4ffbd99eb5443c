"""
Tests for run settings loading.
"""

import pytest

from connector_upgrader.core.config import Settings, load_settings
from connector_upgrader.core.constants import DEFAULT_LEGACY_THRESHOLD
from connector_upgrader.core.enums import DeploymentMode
from connector_upgrader.core.exceptions import UsageError


class TestLoadSettings:
    def test_defaults(self):
        settings = Settings(legacy_threshold=DEFAULT_LEGACY_THRESHOLD)
        assert settings.connector_dir == "custom/modules/Connectors/connectors"
        assert settings.backup_subdirs == ("sources", "formatters")
        assert settings.deployment_mode == DeploymentMode.DIRECT
        assert settings.stale_extension_path == "ext/rest/salesfusion"

    def test_yaml_file_and_overrides(self, tmp_path):
        config = tmp_path / "upgrade.yaml"
        config.write_text(
            "legacy_threshold: '3.0'\n"
            "provider_short_name: acme\n"
            "deployment_mode: shadowed\n"
        )

        settings = load_settings(config, deployment_mode="direct", upload_url=None)

        assert settings.legacy_threshold == "3.0"
        assert settings.stale_extension_path == "ext/rest/acme"
        assert settings.deployment_mode == DeploymentMode.DIRECT

    def test_none_override_keeps_file_value(self, tmp_path):
        config = tmp_path / "upgrade.yaml"
        config.write_text("deployment_mode: shadowed\n")
        assert load_settings(config, deployment_mode=None).deployment_mode == (
            DeploymentMode.SHADOWED
        )

    @pytest.mark.parametrize(
        "content",
        ["unknown_key: 1\n", "- a list\n", "legacy_threshold: [unclosed\n"],
    )
    def test_invalid_files(self, tmp_path, content):
        config = tmp_path / "upgrade.yaml"
        config.write_text(content)
        with pytest.raises(UsageError):
            load_settings(config)

    def test_missing_file(self, tmp_path):
        with pytest.raises(UsageError, match="does not exist"):
            load_settings(tmp_path / "missing.yaml")
