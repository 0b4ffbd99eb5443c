"""
Upgrade orchestration module.

Provides the main upgrade workflow and construction of package uploads.
"""

from .package_orchestrator import PackageOrchestrator
from .upload_request import build_upload_request

__all__ = ["PackageOrchestrator", "build_upload_request"]
