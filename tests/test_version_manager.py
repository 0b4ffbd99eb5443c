"""
Tests for PHP-style version comparison.
"""

import pytest

from connector_upgrader.validation.version_manager import (
    canonicalize_version,
    compare_versions,
    is_older_than,
    needs_legacy_backup,
    parse_version,
)


class TestParseVersion:
    def test_canonicalize_splits_letters_and_digits(self):
        assert canonicalize_version("2.2RC1") == "2.2.RC.1"
        assert canonicalize_version("3.0-beta_2") == "3.0.beta.2"
        assert canonicalize_version(" 1..2 ") == "1.2"

    def test_parse_numeric_and_words(self):
        assert parse_version("2.2RC1") == [2, 2, "rc", 1]
        assert parse_version("2.10") == [2, 10]

    def test_parse_empty(self):
        assert parse_version("") == []


class TestCompareVersions:
    @pytest.mark.parametrize(
        "left, right, expected",
        [
            ("2.0", "2.1", -1),
            ("2.1", "2.1", 0),
            ("2.2", "2.1", 1),
            ("2.10", "2.9", 1),
            ("2.1", "2.1.0", -1),
            ("2.1.0", "2.1", 1),
            ("2.1RC1", "2.1", -1),
            ("2.1-beta", "2.1-RC1", -1),
            ("2.1alpha", "2.1beta", -1),
            ("2.1dev", "2.1alpha", -1),
            ("2.1pl1", "2.1", 1),
            ("2.0.9", "2.1", -1),
        ],
    )
    def test_ordering(self, left, right, expected):
        """Comparison follows PHP version_compare ordering."""
        assert compare_versions(left, right) == expected

    def test_antisymmetric(self):
        assert compare_versions("2.1RC2", "2.1RC10") == -compare_versions("2.1RC10", "2.1RC2")


class TestLegacyThreshold:
    def test_older_version_needs_backup(self):
        assert needs_legacy_backup("2.0", "2.1") is True
        assert needs_legacy_backup("1.9.3", "2.1") is True

    def test_threshold_and_newer_do_not(self):
        assert needs_legacy_backup("2.1", "2.1") is False
        assert needs_legacy_backup("2.2", "2.1") is False

    def test_is_older_than(self):
        assert is_older_than("2.1RC1", "2.1")
        assert not is_older_than("2.1.1", "2.1")
