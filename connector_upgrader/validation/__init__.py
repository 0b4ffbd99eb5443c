"""
Validation package for the connector upgrader.

Contains version parsing and comparison used to decide which upgrade path a
given installed package needs.
"""

from .version_manager import (
    canonicalize_version,
    compare_versions,
    is_older_than,
    needs_legacy_backup,
    parse_version,
)

__all__ = [
    "canonicalize_version",
    "compare_versions",
    "is_older_than",
    "needs_legacy_backup",
    "parse_version",
]
