"""Domain entities exposed by the application."""

from .contract import (
    CONTRACT_STATUS_ACTIVE,
    PAYMENT_STATUS_PENDING,
    Contract,
    ContractAssignment,
    ContractService,
)
from .metadata import (
    ApprovalRequiredMetadata,
    ContractAssignmentMetadata,
    ContractExpiringMetadata,
    NewContractMetadata,
    NewUserMetadata,
    NotificationMetadata,
    OpaqueMetadata,
    PaymentOverdueMetadata,
    PaymentReceivedMetadata,
    PermissionChangeMetadata,
    SecurityAlertMetadata,
    ServiceCommentMetadata,
    ServiceStatusChangeMetadata,
    SystemEventMetadata,
    parse_metadata,
)
from .notification import Notification
from .notification_type import NotificationPriority, NotificationType
from .role import ADMIN_ROLE_ALIAS, Role
from .targeting import NotificationPolicy, ResolutionContext
from .user import User

__all__ = [
    "ADMIN_ROLE_ALIAS",
    "CONTRACT_STATUS_ACTIVE",
    "PAYMENT_STATUS_PENDING",
    "ApprovalRequiredMetadata",
    "Contract",
    "ContractAssignment",
    "ContractAssignmentMetadata",
    "ContractExpiringMetadata",
    "ContractService",
    "NewContractMetadata",
    "NewUserMetadata",
    "Notification",
    "NotificationMetadata",
    "NotificationPolicy",
    "NotificationPriority",
    "NotificationType",
    "OpaqueMetadata",
    "PaymentOverdueMetadata",
    "PaymentReceivedMetadata",
    "PermissionChangeMetadata",
    "ResolutionContext",
    "Role",
    "SecurityAlertMetadata",
    "ServiceCommentMetadata",
    "ServiceStatusChangeMetadata",
    "SystemEventMetadata",
    "User",
    "parse_metadata",
]
