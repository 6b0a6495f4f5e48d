"""Closed vocabularies shared by notifications and their metadata."""

from enum import Enum


class NotificationType(str, Enum):
    """Every kind of notification the hub stores."""

    CONTRACT_ASSIGNMENT = "contract_assignment"
    PERMISSION_CHANGE = "permission_change"
    CONTRACT_CREATED = "contract_created"
    CONTRACT_UPDATED = "contract_updated"
    CONTRACT_STATUS_CHANGE = "contract_status_change"
    CONTRACT_EXPIRING = "contract_expiring"
    PAYMENT_OVERDUE = "payment_overdue"
    PAYMENT_RECEIVED = "payment_received"
    SERVICE_COMMENT = "service_comment"
    SERVICE_STATUS_CHANGE = "service_status_change"
    NEW_CONTRACT = "new_contract"
    NEW_USER = "new_user"
    SECURITY_ALERT = "security_alert"
    FAILED_LOGIN = "failed_login"
    APPROVAL_REQUIRED = "approval_required"
    SYSTEM_EVENT = "system_event"
    SYSTEM_MAINTENANCE = "system_maintenance"
    SYSTEM_UPDATE = "system_update"
    INFO = "info"


class NotificationPriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


__all__ = ["NotificationPriority", "NotificationType"]
