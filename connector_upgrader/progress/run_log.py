"""
Run log handling for upgrade runs.

The run log is an append-only, timestamped file that records every step of one
upgrade. It is a loguru file sink filtered to the records bound to this run, so
library diagnostics never leak into it and two runs in one process never mix.
"""

import sys
import uuid
from pathlib import Path
from typing import Union

from loguru import logger

from connector_upgrader.core.constants import CONSOLE_LOG_FORMAT, RUN_LOG_FORMAT
from connector_upgrader.core.exceptions import PreconditionError


class RunLog:
    """
    Append-only log sink scoped to one upgrade run.

    Use it as a context manager so the file is closed on every exit path:

        with RunLog(path) as run_log:
            run_log.info("Uninstall connector package")

    Writes made while the log is closed are dropped.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._name = f"run-{uuid.uuid4().hex}"
        self._handler_id = None
        self._logger = logger.bind(run_log=self._name)

    @property
    def is_open(self) -> bool:
        return self._handler_id is not None

    def open(self) -> "RunLog":
        """
        Attach the file sink in append mode.

        Raises:
            PreconditionError: If the log file cannot be opened
        """
        if self.is_open:
            return self
        try:
            self._handler_id = logger.add(
                str(self.path),
                format=RUN_LOG_FORMAT,
                level="DEBUG",
                mode="a",
                encoding="utf-8",
                colorize=False,
                filter=self._accepts,
            )
        except (OSError, ValueError) as e:
            logger.debug(f"Run log sink rejected {self.path}: {e}")
            raise PreconditionError(f"Unable to open log file: {self.path}.")
        return self

    def close(self) -> None:
        """Flush and detach the file sink. Safe to call more than once."""
        if self._handler_id is None:
            return
        handler_id, self._handler_id = self._handler_id, None
        logger.remove(handler_id)

    def _accepts(self, record) -> bool:
        return record["extra"].get("run_log") == self._name

    def debug(self, message: str) -> None:
        self._logger.opt(depth=1).debug(message)

    def info(self, message: str) -> None:
        self._logger.opt(depth=1).info(message)

    def warning(self, message: str) -> None:
        self._logger.opt(depth=1).warning(message)

    def error(self, message: str) -> None:
        self._logger.opt(depth=1).error(message)

    def __enter__(self) -> "RunLog":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def configure_console(verbose: bool = False) -> None:
    """
    Reset loguru console output for CLI use.

    The terminal only shows the final result line, so stderr diagnostics are
    enabled on request.
    """
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format=CONSOLE_LOG_FORMAT)
