"""
Tests for the per-run log sink.
"""

import re

import pytest
from loguru import logger

from connector_upgrader.core.exceptions import PreconditionError
from connector_upgrader.progress.run_log import RunLog

LINE_PATTERN = re.compile(
    r"^\w{3}, \d{2} \w{3} \d{4} \d{2}:\d{2}:\d{2} [+-]\d{4} - (?P<message>.*)$"
)


class TestRunLog:
    def test_lines_are_timestamped(self, tmp_path):
        path = tmp_path / "upgrade.log"
        with RunLog(path) as run_log:
            run_log.info("Uninstall connector package")

        lines = path.read_text().splitlines()
        assert len(lines) == 1
        match = LINE_PATTERN.match(lines[0])
        assert match is not None
        assert match.group("message") == "Uninstall connector package"

    def test_appends_across_runs(self, tmp_path):
        path = tmp_path / "upgrade.log"
        with RunLog(path) as run_log:
            run_log.info("first run")
        with RunLog(path) as run_log:
            run_log.info("second run")

        content = path.read_text()
        assert "first run" in content and "second run" in content

    def test_only_bound_records_reach_the_file(self, tmp_path):
        path = tmp_path / "upgrade.log"
        other_path = tmp_path / "other.log"
        with RunLog(path) as run_log, RunLog(other_path) as other:
            logger.info("library diagnostic")
            run_log.warning("mine")
            other.error("theirs")

        assert path.read_text().count(" - ") == 1
        assert "mine" in path.read_text()
        assert "theirs" not in path.read_text()
        assert "library diagnostic" not in path.read_text()

    def test_close_is_idempotent_and_drops_later_writes(self, tmp_path):
        path = tmp_path / "upgrade.log"
        run_log = RunLog(path).open()
        assert run_log.is_open
        run_log.close()
        run_log.close()
        run_log.info("after close")
        assert not run_log.is_open
        assert "after close" not in path.read_text()

    def test_unopenable_path(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(PreconditionError) as exc_info:
            RunLog(blocker / "upgrade.log").open()
        assert exc_info.value.message.startswith("Unable to open log file: ")
