"""Repository implementations for infrastructure layer."""

from .contract_repository import ContractRepository
from .notification_repository import NotificationRepository
from .user_repository import UserRepository

__all__ = [
    "ContractRepository",
    "NotificationRepository",
    "UserRepository",
]
