"""
Progress reporting for upgrade runs.

Provides the per-run log sink and console configuration.
"""

from .run_log import RunLog, configure_console

__all__ = ["RunLog", "configure_console"]
