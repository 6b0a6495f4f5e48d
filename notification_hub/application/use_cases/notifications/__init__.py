"""Public helpers for emitting and reading notifications."""

from .dispatcher import (
    GLOBAL_NOTICE_TYPES,
    NotificationDispatcher,
    NotificationPersistenceError,
    contract_link,
)
from .inbox import (
    NotificationPage,
    acknowledge_notifications,
    count_unread,
    delete_all_notifications,
    delete_old_notifications,
    list_notifications,
    mark_all_as_read,
    mark_notification_as_read,
)
from .jobs import (
    EXPIRING_MILESTONES,
    JobReport,
    check_expiring_contracts,
    check_overdue_payments,
    purge_old_notifications,
    run_all,
)
from .recipients import NOTIFICATION_POLICIES, RecipientResolver, get_policy

__all__ = [
    "EXPIRING_MILESTONES",
    "GLOBAL_NOTICE_TYPES",
    "NOTIFICATION_POLICIES",
    "JobReport",
    "NotificationDispatcher",
    "NotificationPage",
    "NotificationPersistenceError",
    "RecipientResolver",
    "acknowledge_notifications",
    "check_expiring_contracts",
    "check_overdue_payments",
    "contract_link",
    "count_unread",
    "delete_all_notifications",
    "delete_old_notifications",
    "get_policy",
    "list_notifications",
    "mark_all_as_read",
    "mark_notification_as_read",
    "purge_old_notifications",
    "run_all",
]
