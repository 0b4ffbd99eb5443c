"""
Configuration Module
Defines run settings, their environment overrides and the optional YAML file.
"""

import os
from pathlib import Path
from typing import Optional, Tuple

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from connector_upgrader.core.constants import (
    BACKUP_DIR,
    BACKUP_SUBDIRS,
    CONNECTOR_DIR,
    DEFAULT_LEGACY_THRESHOLD,
    DEFAULT_PROVIDER_SHORT_NAME,
    DEFAULT_TARGET_KEY,
    DISPLAY_CONFIG_FILE,
    SNAPSHOT_FILE,
)
from connector_upgrader.core.enums import DeploymentMode
from connector_upgrader.core.exceptions import UsageError

# --- Environment Configuration Guide ---
# CONNECTOR_UPGRADE_TARGET_KEY: package key to upgrade (defaults to the Market connector).
# CONNECTOR_UPGRADE_UPLOAD_URL: when set, the package is posted to this REST endpoint
# instead of being staged through the local instance files. The endpoint must stage
# into the same upgrade history the local backend reads (<instance>/db), otherwise the
# staged record id it returns cannot be retrieved.

TARGET_KEY: str = os.getenv("CONNECTOR_UPGRADE_TARGET_KEY", DEFAULT_TARGET_KEY)
LEGACY_THRESHOLD: str = os.getenv(
    "CONNECTOR_UPGRADE_LEGACY_THRESHOLD", DEFAULT_LEGACY_THRESHOLD
)
UPLOAD_URL: Optional[str] = os.getenv("CONNECTOR_UPGRADE_UPLOAD_URL") or None
UPLOAD_TOKEN: Optional[str] = os.getenv("CONNECTOR_UPGRADE_UPLOAD_TOKEN") or None


class Settings(BaseModel):
    """Settings for one upgrade run."""

    model_config = ConfigDict(extra="forbid")

    target_key: str = TARGET_KEY
    provider_short_name: str = DEFAULT_PROVIDER_SHORT_NAME
    legacy_threshold: str = LEGACY_THRESHOLD
    connector_dir: str = CONNECTOR_DIR
    backup_subdirs: Tuple[str, ...] = BACKUP_SUBDIRS
    backup_dir: str = BACKUP_DIR
    snapshot_file: str = SNAPSHOT_FILE
    display_config_file: str = DISPLAY_CONFIG_FILE
    deployment_mode: DeploymentMode = DeploymentMode.DIRECT
    # the REST endpoint must write to the history under <instance>/db
    upload_url: Optional[str] = UPLOAD_URL
    upload_token: Optional[str] = UPLOAD_TOKEN
    # None disables the HTTP client timeout
    upload_timeout: Optional[float] = None

    @property
    def stale_extension_path(self) -> str:
        """Path of the legacy connector extension, relative to a backup subdirectory."""
        return f"ext/rest/{self.provider_short_name}"


def load_settings(config_path: Optional[Path] = None, **overrides) -> Settings:
    """
    Build the run settings from defaults, an optional YAML file and overrides.

    Args:
        config_path: Optional YAML file with settings keys
        **overrides: Values that win over the file (e.g. CLI flags); None is ignored

    Returns:
        Validated Settings

    Raises:
        UsageError: If the file cannot be read or holds unknown/invalid keys
    """
    data = {}
    if config_path is not None:
        try:
            logger.info(f"Loading upgrade configuration from: {config_path}")
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise UsageError(f"Configuration file {config_path} does not exist.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to parse YAML configuration: {e}")
            raise UsageError(f"Configuration file {config_path} is invalid: {e}")

        if not isinstance(data, dict):
            raise UsageError(
                f"Configuration file {config_path} must contain a mapping of settings."
            )

    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return Settings(**data)
    except ValidationError as e:
        raise UsageError(f"Invalid configuration: {e}")
