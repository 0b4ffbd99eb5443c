"""
Path resolution for CRM instances.

A CRM instance is either a plain directory (direct mode) or a thin directory
layered over a shared, read-only template installation (shadowed mode). In
shadowed mode the instance is a copy-on-write overlay: reads fall through to
the template unless the instance has its own copy, and every write lands in the
instance. Every relative path the upgrader touches goes through InstanceLayout
so both modes behave the same way.
"""

from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Union

from loguru import logger

from connector_upgrader.core.constants import SHADOWED_PATHS
from connector_upgrader.core.enums import DeploymentMode
from connector_upgrader.core.exceptions import PreconditionError, UsageError


class InstanceLayout:
    """
    Resolve instance-relative paths for a deployment mode.

    Args:
        instance_path: The CRM instance directory
        mode: Direct or shadowed deployment
        template_path: Template installation, required in shadowed mode
        shadowed_paths: Top-level names owned by the instance in shadowed mode
    """

    def __init__(
        self,
        instance_path: Union[str, Path],
        mode: DeploymentMode = DeploymentMode.DIRECT,
        template_path: Optional[Union[str, Path]] = None,
        shadowed_paths: Iterable[str] = SHADOWED_PATHS,
    ):
        self.mode = DeploymentMode(mode)
        if self.mode == DeploymentMode.SHADOWED and not template_path:
            raise UsageError("Missing required parameter(s).")

        self._given_instance = Path(instance_path)
        self._given_template = Path(template_path) if template_path else None
        self.instance_path = self._given_instance.resolve()
        self.template_path = (
            Path(template_path).resolve()
            if self.mode == DeploymentMode.SHADOWED
            else None
        )
        self.shadowed_paths = frozenset(shadowed_paths)

    def validate(self) -> None:
        """
        Check that the configured directories exist.

        Raises:
            PreconditionError: If the instance or template directory is missing
        """
        if not self.instance_path.is_dir():
            raise PreconditionError(
                f"CRM instance path {self._given_instance} does not exist."
            )
        if self.template_path is not None and not self.template_path.is_dir():
            raise PreconditionError(
                f"Template path {self._given_template} does not exist."
            )
        logger.debug(
            f"Instance layout: mode={self.mode.value} "
            f"instance={self.instance_path} template={self.template_path}"
        )

    def is_instance_owned(self, relative: Union[str, PurePosixPath]) -> bool:
        """True if the path is never read from the template."""
        if self.template_path is None:
            return True
        parts = PurePosixPath(relative).parts
        return bool(parts) and parts[0] in self.shadowed_paths

    @staticmethod
    def _checked(relative: Union[str, PurePosixPath]) -> PurePosixPath:
        relative = PurePosixPath(relative)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid instance path: {relative}")
        return relative

    def resolve_write(self, relative: Union[str, PurePosixPath]) -> Path:
        """
        Map an instance-relative path to the location writes must go to.

        Writes and deletes always land in the instance; the template is
        never modified.

        Raises:
            ValueError: If the path is absolute or escapes the instance
        """
        return self.instance_path.joinpath(*self._checked(relative).parts)

    def resolve_read(self, relative: Union[str, PurePosixPath]) -> Path:
        """
        Map an instance-relative path to the copy that should be read.

        Instance-owned names and files the instance already overrides are
        read from the instance; anything else falls through to the template.

        Raises:
            ValueError: If the path is absolute or escapes the instance
        """
        instance_copy = self.resolve_write(relative)
        if self.template_path is None or self.is_instance_owned(relative):
            return instance_copy
        if instance_copy.exists():
            return instance_copy
        return self.template_path.joinpath(*self._checked(relative).parts)
