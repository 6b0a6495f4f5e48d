"""Domain entity representing a user from the directory."""

from dataclasses import dataclass
from datetime import datetime

from .role import ADMIN_ROLE_ALIAS, Role


@dataclass
class User:
    """Directory attributes the notification pipeline needs about a user."""

    id: int
    role: Role
    name: str
    email: str
    is_active: bool
    deleted: bool = False
    created_by: int | None = None
    created_at: datetime | None = None

    def has_role(self, alias: str) -> bool:
        """Return ``True`` when the user's role alias matches ``alias``."""

        return self.role.alias.lower() == alias.lower()

    def is_admin(self) -> bool:
        """Return ``True`` when the user is an administrator."""

        return self.has_role(ADMIN_ROLE_ALIAS)

    def can_be_notified(self) -> bool:
        return self.is_active and not self.deleted
