"""
Application-wide constants and configuration defaults.

Centralized names for the connector tree, backup locations and the legacy
version threshold so every component agrees on the same on-disk layout.
"""

from typing import Final

# ==============================================================================
# TARGET PACKAGE
# ==============================================================================

# Stable key of the connector package in the package history
DEFAULT_TARGET_KEY: Final[str] = "ext_rest_salesfusion"

# Directory name of the connector under <sub>/ext/rest/
DEFAULT_PROVIDER_SHORT_NAME: Final[str] = "salesfusion"

# Installed versions strictly lower than this need a connector file backup
DEFAULT_LEGACY_THRESHOLD: Final[str] = "2.1"

# ==============================================================================
# FILE AND PATH CONSTANTS (relative to the instance working tree)
# ==============================================================================

CONNECTOR_DIR: Final[str] = "custom/modules/Connectors/connectors"
BACKUP_SUBDIRS: Final[tuple] = ("sources", "formatters")
BACKUP_DIR: Final[str] = "cache/upgrades/connector_backup"
SNAPSHOT_FILE: Final[str] = "cache/upgrades/settings.bak"
DISPLAY_CONFIG_FILE: Final[str] = "custom/modules/Connectors/metadata/display_config.json"

# Local instance backend tables, always kept with the instance
HISTORY_FILE: Final[str] = "db/upgrade_history.json"
USERS_FILE: Final[str] = "db/users.json"
UPLOAD_DIR: Final[str] = "upload/upgrades/module"
PROVIDER_CONFIG_NAME: Final[str] = "config.json"

# Paths that stay with the instance when it runs on top of a shared template
SHADOWED_PATHS: Final[tuple] = (
    "cache",
    "upload",
    "upgrades",
    "config.php",
    "custom",
    "package_install.log",
    "sugarcrm.log",
)

# ==============================================================================
# UPLOAD CONSTANTS
# ==============================================================================

UPLOAD_FIELD_NAME: Final[str] = "upgrade_zip"
UPLOAD_TEMP_PREFIX: Final[str] = "API"
ALLOWED_PACKAGE_EXTENSIONS: Final[set] = {".zip"}
PACKAGE_MANIFEST_NAME: Final[str] = "manifest.json"
PACKAGE_FILES_ROOT: Final[str] = "files/"

# ==============================================================================
# LOGGING
# ==============================================================================

# RFC 2822 style timestamp, e.g. "Thu, 21 Dec 2000 16:01:07 +0200 - message"
RUN_LOG_FORMAT: Final[str] = "{time:ddd, DD MMM YYYY HH:mm:ss ZZ} - {message}"
CONSOLE_LOG_FORMAT: Final[str] = (
    "{time:YYYY-MM-DD HH:mm:ss} - {name} - {level: <8} - [{file}:{line}] - {message}"
)

# ==============================================================================
# CLI
# ==============================================================================

SUCCESS_MESSAGE: Final[str] = "Success!"
EXIT_SUCCESS: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_USAGE: Final[int] = 2
