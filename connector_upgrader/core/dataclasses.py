"""
Data classes for upgrade run tracking.

Defines structured containers for the step-by-step trace of one upgrade run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from connector_upgrader.core.enums import OperationStatus, UpgradePhase


@dataclass
class UpgradeStep:
    """Represents an individual step in the upgrade process."""

    phase: UpgradePhase
    status: OperationStatus
    message: str
    timestamp: float = 0.0


@dataclass
class UpgradeResult:
    """Comprehensive results of an upgrade run."""

    target_key: str
    success: bool = False
    start_time: float = 0.0
    end_time: float = 0.0
    upgrade_duration: float = 0.0
    initial_version: Optional[str] = None
    final_version: Optional[str] = None
    legacy_backup_taken: bool = False
    settings_restored: bool = False
    phase: UpgradePhase = UpgradePhase.LOOKUP
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    upgrade_steps: List[UpgradeStep] = field(default_factory=list)

    def calculate_duration(self):
        """Calculate total upgrade duration."""
        if self.start_time and self.end_time:
            self.upgrade_duration = self.end_time - self.start_time

    def add_step(
        self,
        phase: UpgradePhase,
        message: str,
        status: OperationStatus = OperationStatus.COMPLETED,
    ):
        """Add a step to the upgrade process."""
        self.phase = phase
        self.upgrade_steps.append(
            UpgradeStep(
                phase=phase,
                status=status,
                message=message,
                timestamp=datetime.now().timestamp(),
            )
        )

    def add_warning(self, warning: str):
        """Add a warning message."""
        self.warnings.append(warning)
