"""ORM models used by the application infrastructure."""

from .contract import ContractAssignmentModel, ContractModel, ContractServiceModel
from .notification import NotificationModel
from .role import RoleModel
from .user import UserModel

__all__ = [
    "ContractAssignmentModel",
    "ContractModel",
    "ContractServiceModel",
    "NotificationModel",
    "RoleModel",
    "UserModel",
]
