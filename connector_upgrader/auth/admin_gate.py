"""
Administrator resolution for mutating operations.

Nothing is uninstalled or installed unless the acting user is an active,
non-deleted administrator.
"""

from typing import Optional

from loguru import logger

from connector_upgrader.core.exceptions import AdminNotFoundError
from connector_upgrader.core.models import AdminIdentity
from connector_upgrader.data_access.interfaces import UserDirectory


class AdminAuthGate:
    """Resolves a user name to a validated administrator identity."""

    def __init__(self, users: UserDirectory):
        self.users = users

    def resolve(self, username: str) -> Optional[AdminIdentity]:
        """
        Look up an active administrator by name.

        Args:
            username: CRM user name

        Returns:
            AdminIdentity, or None if the user is missing, inactive,
            deleted or not an administrator
        """
        if not username:
            return None

        user = self.users.find_active_user(username)
        if user is None:
            logger.debug(f"User {username!r} not found or not active")
            return None
        if user.deleted or user.status != "Active":
            logger.debug(f"User {username!r} is not active")
            return None
        if not user.id or not user.is_admin:
            logger.debug(f"User {username!r} is not an administrator")
            return None

        return AdminIdentity(id=user.id, user_name=user.user_name)

    def require(self, username: str) -> AdminIdentity:
        """
        Like :meth:`resolve`, but fail loudly.

        Raises:
            AdminNotFoundError: If no active administrator matches
        """
        identity = self.resolve(username)
        if identity is None:
            raise AdminNotFoundError(f"Admin user {username} not found.")
        return identity
