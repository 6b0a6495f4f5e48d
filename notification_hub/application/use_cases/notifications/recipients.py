"""Decide which users are told about a contract event."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notification_hub.domain.entities import (
    NotificationPolicy,
    NotificationType,
    ResolutionContext,
)
from notification_hub.infrastructure.repositories import (
    ContractRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_POLICY = NotificationPolicy(only_assigned=True, exclude_actor=True)

NOTIFICATION_POLICIES: Mapping[str, NotificationPolicy] = {
    NotificationType.CONTRACT_ASSIGNMENT.value: NotificationPolicy(
        include_admins=False, only_assigned=True, exclude_actor=True
    ),
    NotificationType.CONTRACT_CREATED.value: NotificationPolicy(
        include_admins=True, only_assigned=False, exclude_actor=False
    ),
    NotificationType.CONTRACT_UPDATED.value: NotificationPolicy(
        include_admins=False, only_assigned=True, exclude_actor=True
    ),
    NotificationType.CONTRACT_STATUS_CHANGE.value: NotificationPolicy(
        include_admins=False, only_assigned=True, exclude_actor=True
    ),
    NotificationType.CONTRACT_EXPIRING.value: NotificationPolicy(
        include_admins=True, only_assigned=True, exclude_actor=False
    ),
    NotificationType.PAYMENT_OVERDUE.value: NotificationPolicy(
        include_admins=True, only_assigned=True, exclude_actor=False
    ),
    NotificationType.PAYMENT_RECEIVED.value: NotificationPolicy(
        include_admins=False, only_assigned=True, exclude_actor=False
    ),
    NotificationType.SERVICE_COMMENT.value: NotificationPolicy(
        include_admins=False, only_assigned=True, exclude_actor=True
    ),
    NotificationType.SERVICE_STATUS_CHANGE.value: NotificationPolicy(
        include_admins=False, only_assigned=True, exclude_actor=True
    ),
    NotificationType.SYSTEM_MAINTENANCE.value: NotificationPolicy(
        include_admins=True, only_assigned=False, exclude_actor=False, is_global=True
    ),
    NotificationType.SYSTEM_UPDATE.value: NotificationPolicy(
        include_admins=True, only_assigned=False, exclude_actor=False, is_global=True
    ),
    NotificationType.SECURITY_ALERT.value: NotificationPolicy(
        include_admins=True, only_assigned=False, exclude_actor=False, admin_only=True
    ),
    NotificationType.FAILED_LOGIN.value: NotificationPolicy(
        include_admins=True, only_assigned=False, exclude_actor=False, admin_only=True
    ),
}


def get_policy(event_type: str | NotificationType) -> NotificationPolicy:
    """Return the targeting policy for ``event_type``."""

    key = event_type.value if isinstance(event_type, NotificationType) else str(event_type)
    return NOTIFICATION_POLICIES.get(key, DEFAULT_POLICY)


class RecipientResolver:
    """Turn an event and its context into the set of users to notify.

    Lookups never raise into the caller: a missing contract or a database error
    is logged and resolves to nobody, since notifying is always a side effect
    of some other business operation.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session)
        self.contracts = ContractRepository(session)

    def resolve(
        self, event_type: str | NotificationType, context: ResolutionContext
    ) -> set[int]:
        if context.explicit_recipients:
            return set(context.explicit_recipients) - {context.actor_user_id}

        policy = get_policy(event_type)
        try:
            if policy.is_global:
                return self.users.list_active_ids()
            if policy.admin_only:
                return self.users.list_active_admin_ids()
            if context.contract_id is None:
                logger.debug("Event %s carries no contract; nobody to notify", event_type)
                return set()
            recipients = self._contract_audience(context.contract_id, policy)
        except (LookupError, SQLAlchemyError):
            self.session.rollback()
            logger.exception(
                "Could not resolve recipients for %s (contract %s)",
                event_type,
                context.contract_id,
            )
            return set()

        if policy.exclude_actor and context.actor_user_id is not None:
            recipients.discard(context.actor_user_id)
        return recipients

    def can_receive(self, user_id: int, contract_id: int) -> bool:
        """Return ``True`` when ``user_id`` may see events of ``contract_id``."""

        try:
            user = self.users.get(user_id)
            if user is None or not user.can_be_notified():
                return False
            if user.is_admin():
                return True
            contract = self.contracts.get(contract_id)
            if contract is None:
                return False
            if contract.created_by == user_id:
                return True
            return any(
                assignment.user_id == user_id
                for assignment in self.contracts.list_assignments(contract_id)
            )
        except (LookupError, ValueError, SQLAlchemyError):
            self.session.rollback()
            logger.exception(
                "Could not check access of user %s to contract %s", user_id, contract_id
            )
            return False

    def admin_ids(self) -> set[int]:
        try:
            return self.users.list_active_admin_ids()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Could not list administrators")
            return set()

    def _contract_audience(self, contract_id: int, policy: NotificationPolicy) -> set[int]:
        contract = self.contracts.get(contract_id)
        if contract is None:
            raise LookupError(f"Contract {contract_id} not found")

        recipients = {
            assignment.user_id for assignment in self.contracts.list_assignments(contract_id)
        }
        if contract.created_by is not None:
            recipients.add(contract.created_by)
        if policy.include_admins:
            recipients |= self.users.list_active_admin_ids()
        return recipients


__all__ = [
    "DEFAULT_POLICY",
    "NOTIFICATION_POLICIES",
    "RecipientResolver",
    "get_policy",
]
