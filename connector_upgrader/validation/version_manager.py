"""
Version comparison for installed connector packages.

Package versions come from CRM manifests and follow PHP ``version_compare``
conventions rather than strict semantic versioning, e.g. "2.0", "2.1.3",
"2.2RC1", "3.0-beta2". Comparison follows the same rules so the legacy
threshold decision matches the platform's own.
"""

import re
from typing import List, Union

from loguru import logger

# Ranking of special release words; numbers rank as "#"
SPECIAL_FORMS = {
    "dev": 0,
    "alpha": 1,
    "a": 1,
    "beta": 2,
    "b": 2,
    "rc": 3,
    "#": 4,
    "pl": 5,
    "p": 5,
}
UNKNOWN_FORM_RANK = -1

Part = Union[int, str]


def canonicalize_version(version_str: str) -> str:
    """
    Normalize separators and split letter/digit runs with dots.

    Examples:
        "2.2RC1" -> "2.2.RC.1"
        "3.0-beta_2" -> "3.0.beta.2"
    """
    version_str = version_str.strip()
    version_str = re.sub(r"[-_+]", ".", version_str)
    version_str = re.sub(r"(?<=\d)(?=[^\d.])|(?<=[^\d.])(?=\d)", ".", version_str)
    return re.sub(r"\.{2,}", ".", version_str).strip(".")


def parse_version(version_str: str) -> List[Part]:
    """
    Parse a version string into comparable parts.

    Numeric parts become ints, everything else is kept as a lowercase word.

    Args:
        version_str: Version string such as "2.1" or "2.2RC1"

    Returns:
        List of parts, e.g. [2, 2, "rc", 1]
    """
    canonical = canonicalize_version(version_str)
    if not canonical:
        logger.warning(f"Could not parse version string: {version_str!r}")
        return []
    return [int(part) if part.isdigit() else part.lower() for part in canonical.split(".")]


def _form_rank(part: Part) -> int:
    if isinstance(part, int):
        return SPECIAL_FORMS["#"]
    return SPECIAL_FORMS.get(part, UNKNOWN_FORM_RANK)


def _compare_parts(left: Part, right: Part) -> int:
    if isinstance(left, int) and isinstance(right, int):
        return (left > right) - (left < right)
    left_rank, right_rank = _form_rank(left), _form_rank(right)
    return (left_rank > right_rank) - (left_rank < right_rank)


def _compare_tail(part: Part) -> int:
    # A trailing number makes the longer version newer; a trailing
    # word is weighed against an implicit "#" release.
    if isinstance(part, int):
        return 1
    return _compare_parts(part, "#")


def compare_versions(current_version: str, other_version: str) -> int:
    """
    Compare two version strings.

    Args:
        current_version: Left-hand version
        other_version: Right-hand version

    Returns:
        -1 if current < other, 0 if equal, 1 if current > other
    """
    left = parse_version(current_version)
    right = parse_version(other_version)

    for left_part, right_part in zip(left, right):
        result = _compare_parts(left_part, right_part)
        if result:
            return result

    if len(left) > len(right):
        return _compare_tail(left[len(right)])
    if len(right) > len(left):
        return -_compare_tail(right[len(left)])
    return 0


def is_older_than(version: str, threshold: str) -> bool:
    """Return True if ``version`` is strictly lower than ``threshold``."""
    return compare_versions(version, threshold) < 0


def needs_legacy_backup(installed_version: str, threshold: str) -> bool:
    """
    Decide whether connector files must be saved before uninstalling.

    Versions below the threshold keep customised connector sources inside
    the package tree, which an uninstall would delete.
    """
    legacy = is_older_than(installed_version, threshold)
    logger.debug(
        f"Installed version {installed_version} vs threshold {threshold}: "
        f"legacy backup {'required' if legacy else 'not required'}"
    )
    return legacy
