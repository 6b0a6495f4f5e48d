"""Turn domain events into stored, pushed notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import timedelta
from functools import partial
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notification_hub.application.background import BackgroundWorkQueue
from notification_hub.config import Settings, get_settings
from notification_hub.domain.entities import (
    ApprovalRequiredMetadata,
    Contract,
    ContractAssignmentMetadata,
    ContractExpiringMetadata,
    ContractService,
    NewContractMetadata,
    NewUserMetadata,
    Notification,
    NotificationMetadata,
    NotificationPriority,
    NotificationType,
    PaymentOverdueMetadata,
    PaymentReceivedMetadata,
    PermissionChangeMetadata,
    ResolutionContext,
    SecurityAlertMetadata,
    ServiceCommentMetadata,
    ServiceStatusChangeMetadata,
    SystemEventMetadata,
    User,
    parse_metadata,
)
from notification_hub.infrastructure import email
from notification_hub.infrastructure.notifications import NotificationPublisher
from notification_hub.infrastructure.repositories import (
    ContractRepository,
    NotificationRepository,
    UserRepository,
)
from notification_hub.utils import app_now

from .recipients import RecipientResolver

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 100
GLOBAL_NOTICE_TYPES = frozenset(
    {NotificationType.SYSTEM_MAINTENANCE, NotificationType.SYSTEM_UPDATE}
)
SERVICE_STATUS_LABELS = {
    "not_started": "No iniciado",
    "scheduled": "Programado",
    "in_progress": "En curso",
    "completed": "Completado",
}


class NotificationPersistenceError(RuntimeError):
    """Raised when a notification could not be written to the store."""


def contract_link(contract_id: int, service_id: int | None = None) -> str:
    link = f"/home/contracts/view/{contract_id}"
    if service_id is not None:
        link += f"#service-{service_id}"
    return link


def _deliver_email(send: Callable[..., bool], *args: Any, **kwargs: Any) -> None:
    if not send(*args, **kwargs):
        raise RuntimeError("Email could not be delivered")


class NotificationDispatcher:
    """Resolve recipients and store one notification per recipient.

    Recipients are processed one after another; a failure to store one
    notification is logged and the remaining recipients are still served.
    """

    def __init__(
        self,
        session: Session,
        publisher: NotificationPublisher | None = None,
        *,
        resolver: RecipientResolver | None = None,
        work_queue: BackgroundWorkQueue | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.publisher = publisher
        self.resolver = resolver or RecipientResolver(session)
        self.work_queue = work_queue
        self.settings = settings or get_settings()
        self.notifications = NotificationRepository(session)
        self.users = UserRepository(session)
        self.contracts = ContractRepository(session)

    def create(self, notification: Notification) -> Notification:
        """Persist ``notification`` and push it to its recipient when online."""

        try:
            saved = self.notifications.create(notification)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(
                "Could not store %s notification for user %s",
                notification.type_value,
                notification.recipient_id,
            )
            raise NotificationPersistenceError(
                f"Notification for user {notification.recipient_id} was not stored"
            ) from exc

        if self.publisher is not None:
            self.publisher.publish(saved)
        return saved

    def notify_contract_assignment(
        self, contract_id: int, assigned_user_ids: Iterable[int], assigner_id: int
    ) -> list[Notification]:
        assigned_user_ids = frozenset(assigned_user_ids)
        if not assigned_user_ids:
            logger.debug("Assignment on contract %s names nobody", contract_id)
            return []

        contract = self._load_contract(contract_id)
        assigner = self._load_user(assigner_id)
        if contract is None or assigner is None:
            logger.info(
                "Skipping assignment notification: contract %s or assigner %s missing",
                contract_id,
                assigner_id,
            )
            return []

        recipients = self.resolver.resolve(
            NotificationType.CONTRACT_ASSIGNMENT,
            ResolutionContext(
                event_type=NotificationType.CONTRACT_ASSIGNMENT.value,
                contract_id=contract_id,
                actor_user_id=assigner_id,
                explicit_recipients=assigned_user_ids,
            ),
        )
        targets = self._notifiable_users(recipients)
        message = (
            f"Fuiste asignado al contrato {contract.contract_number} por {assigner.name}."
        )
        created = self._fan_out(
            targets,
            lambda user_id: Notification(
                id=None,
                recipient_id=user_id,
                type=NotificationType.CONTRACT_ASSIGNMENT,
                title="Nuevo contrato asignado",
                message=message,
                link=contract_link(contract_id),
                metadata=ContractAssignmentMetadata(
                    contract_id=contract_id, assigner_id=assigner_id
                ),
            ),
        )
        for notification in created:
            user = targets[notification.recipient_id]
            self._enqueue_email(
                f"contract-assignment-email:{contract_id}:{user.id}",
                partial(
                    email.send_contract_assignment_email,
                    user.email,
                    user.name,
                    contract_id=contract_id,
                    contract_number=contract.contract_number,
                    client_name=contract.client_name,
                    assigned_by=assigner.name,
                ),
            )
        return created

    def notify_role_change(
        self, contract_id: int, user_id: int, new_role: str, changer_id: int
    ) -> list[Notification]:
        contract = self._load_contract(contract_id)
        changer = self._load_user(changer_id)
        if contract is None or changer is None:
            return []
        if not self.resolver.can_receive(user_id, contract_id):
            logger.info(
                "User %s cannot receive events of contract %s", user_id, contract_id
            )
            return []
        target = self._notifiable_users({user_id}).get(user_id)
        if target is None:
            return []

        role_label = email.ROLE_LABELS.get(new_role, new_role)
        created = self._fan_out(
            {user_id: target},
            lambda recipient_id: Notification(
                id=None,
                recipient_id=recipient_id,
                type=NotificationType.PERMISSION_CHANGE,
                title="Permiso de contrato modificado",
                message=(
                    f"Tu permiso en el contrato {contract.contract_number} cambió a "
                    f'"{role_label}" por {changer.name}.'
                ),
                link=contract_link(contract_id),
                metadata=PermissionChangeMetadata(
                    contract_id=contract_id, new_role=new_role, changer_id=changer_id
                ),
            ),
        )
        if created:
            self._enqueue_email(
                f"role-change-email:{contract_id}:{user_id}",
                partial(
                    email.send_role_change_email,
                    target.email,
                    target.name,
                    contract_number=contract.contract_number,
                    new_role=new_role,
                    changed_by=changer.name,
                ),
            )
        return created

    def notify_contract_expiring(
        self, contract_id: int, days_until_expiration: int
    ) -> list[Notification]:
        contract = self._load_contract(contract_id)
        if contract is None:
            return []

        recipients = self._resolve_for_contract(NotificationType.CONTRACT_EXPIRING, contract_id)
        end_date = contract.end_date.strftime("%d/%m/%Y") if contract.end_date else "-"
        priority = (
            NotificationPriority.HIGH
            if days_until_expiration <= self.settings.expiring_high_priority_days
            else NotificationPriority.NORMAL
        )
        return self._fan_out(
            recipients,
            lambda user_id: Notification(
                id=None,
                recipient_id=user_id,
                type=NotificationType.CONTRACT_EXPIRING,
                title="Contrato próximo a vencer",
                message=(
                    f"El contrato {contract.contract_number} vence en "
                    f"{days_until_expiration} días ({end_date})."
                ),
                link=contract_link(contract_id),
                priority=priority,
                metadata=ContractExpiringMetadata(
                    contract_id=contract_id,
                    days_until_expiration=days_until_expiration,
                ),
            ),
        )

    def notify_payment_overdue(self, contract_id: int, days_overdue: int) -> list[Notification]:
        contract = self._load_contract(contract_id)
        if contract is None:
            return []

        metadata = PaymentOverdueMetadata(contract_id=contract_id, days_overdue=days_overdue)
        since = app_now() - timedelta(
            hours=self.settings.overdue_dedup_window_hours
        )
        try:
            existing = self.notifications.find_recent_matching(
                NotificationType.PAYMENT_OVERDUE.value, metadata.to_dict(), since=since
            )
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception(
                "Duplicate check failed for overdue payment of contract %s; skipping",
                contract_id,
            )
            return []
        if existing is not None:
            logger.info(
                "Overdue payment of contract %s (%s days) already notified",
                contract.contract_number,
                days_overdue,
            )
            return []

        recipients = self._resolve_for_contract(NotificationType.PAYMENT_OVERDUE, contract_id)
        return self._fan_out(
            recipients,
            lambda user_id: Notification(
                id=None,
                recipient_id=user_id,
                type=NotificationType.PAYMENT_OVERDUE,
                title="Pago atrasado",
                message=(
                    f"El pago del contrato {contract.contract_number} tiene "
                    f"{days_overdue} días de atraso."
                ),
                link=contract_link(contract_id),
                priority=NotificationPriority.HIGH,
                metadata=metadata,
            ),
        )

    def notify_payment_received(
        self, contract_id: int, installment_id: int | None, actor_id: int | None
    ) -> list[Notification]:
        contract = self._load_contract(contract_id)
        if contract is None:
            return []

        recipients = self._resolve_for_contract(
            NotificationType.PAYMENT_RECEIVED, contract_id, actor_id
        )
        return self._fan_out(
            recipients,
            lambda user_id: Notification(
                id=None,
                recipient_id=user_id,
                type=NotificationType.PAYMENT_RECEIVED,
                title="Pago recibido",
                message=f"Se registró un pago del contrato {contract.contract_number}.",
                link=contract_link(contract_id),
                metadata=PaymentReceivedMetadata(
                    contract_id=contract_id,
                    installment_id=installment_id,
                    actor_id=actor_id,
                ),
            ),
        )

    def notify_service_comment(
        self, contract_service_id: int, author_id: int, comment_text: str
    ) -> list[Notification]:
        service = self._load_service(contract_service_id)
        author = self._load_user(author_id)
        if service is None or author is None:
            return []

        recipients = self._resolve_for_contract(
            NotificationType.SERVICE_COMMENT, service.contract_id, author_id
        )
        return self._fan_out(
            recipients,
            lambda user_id: Notification(
                id=None,
                recipient_id=user_id,
                type=NotificationType.SERVICE_COMMENT,
                title="Nuevo comentario en servicio",
                message=(
                    f'{author.name} comentó el servicio "{service.service_name}" '
                    f"del contrato {service.contract_number}."
                ),
                link=contract_link(service.contract_id, contract_service_id),
                metadata=ServiceCommentMetadata(
                    contract_id=service.contract_id,
                    service_id=contract_service_id,
                    comment_preview=(comment_text or "")[:COMMENT_PREVIEW_LENGTH],
                    author_id=author_id,
                ),
            ),
        )

    def notify_service_status_change(
        self, contract_service_id: int, new_status: str, changed_by: int
    ) -> list[Notification]:
        service = self._load_service(contract_service_id)
        changer = self._load_user(changed_by)
        if service is None or changer is None:
            return []

        recipients = self._resolve_for_contract(
            NotificationType.SERVICE_STATUS_CHANGE, service.contract_id, changed_by
        )
        status_label = SERVICE_STATUS_LABELS.get(new_status, new_status)
        return self._fan_out(
            recipients,
            lambda user_id: Notification(
                id=None,
                recipient_id=user_id,
                type=NotificationType.SERVICE_STATUS_CHANGE,
                title="Estado de servicio modificado",
                message=(
                    f'El estado del servicio "{service.service_name}" cambió a '
                    f'"{status_label}" por {changer.name}.'
                ),
                link=contract_link(service.contract_id, contract_service_id),
                metadata=ServiceStatusChangeMetadata(
                    contract_id=service.contract_id,
                    service_id=contract_service_id,
                    new_status=new_status,
                    changed_by=changed_by,
                ),
            ),
        )

    def notify_admins(
        self,
        notification_type: str | NotificationType,
        title: str,
        message: str,
        *,
        link: str | None = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        metadata: NotificationMetadata | Mapping[str, Any] | None = None,
        exclude: Iterable[int] = (),
    ) -> list[Notification]:
        """Store one notification per active administrator."""

        if not isinstance(metadata, NotificationMetadata):
            metadata = parse_metadata(notification_type, metadata)
        admins = self.resolver.admin_ids() - set(exclude)
        if not admins:
            logger.info("No administrators to notify about %s", title)
            return []

        return self._fan_out(
            admins,
            lambda user_id: Notification(
                id=None,
                recipient_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                link=link,
                priority=priority,
                metadata=metadata,
            ),
        )

    def notify_admins_new_contract(self, contract_id: int, creator_id: int) -> list[Notification]:
        contract = self._load_contract(contract_id)
        creator = self._load_user(creator_id)
        if contract is None or creator is None:
            return []

        client_name = contract.client_name or "N/A"
        return self.notify_admins(
            NotificationType.NEW_CONTRACT,
            "Nuevo contrato creado",
            (
                f"{creator.name} creó el contrato {contract.contract_number}. "
                f"Cliente: {client_name}."
            ),
            link=contract_link(contract_id),
            metadata=NewContractMetadata(
                contract_id=contract_id,
                contract_number=contract.contract_number,
                creator_id=creator_id,
                client_name=client_name,
            ),
            exclude={creator_id},
        )

    def notify_admins_new_user(self, user_id: int, creator_id: int) -> list[Notification]:
        new_user = self._load_user(user_id)
        creator = self._load_user(creator_id)
        if new_user is None or creator is None:
            return []

        return self.notify_admins(
            NotificationType.NEW_USER,
            "Nuevo usuario creado",
            f"{creator.name} creó el usuario {new_user.name} ({new_user.email}).",
            link="/home/users",
            metadata=NewUserMetadata(new_user_id=user_id, creator_id=creator_id),
        )

    def notify_admins_failed_logins(
        self, email_address: str, ip_address: str, attempt_count: int
    ) -> list[Notification]:
        return self.notify_admins(
            NotificationType.SECURITY_ALERT,
            "Alerta de seguridad: inicio de sesión fallido",
            (
                f"Se registraron {attempt_count} intentos fallidos de inicio de sesión "
                f"para {email_address} desde la IP {ip_address}."
            ),
            priority=NotificationPriority.HIGH,
            metadata=SecurityAlertMetadata(
                email=email_address,
                ip_address=ip_address,
                attempt_count=attempt_count,
                timestamp=app_now().isoformat(),
            ),
        )

    def notify_admins_contract_needs_approval(
        self, contract_id: int, reason: str
    ) -> list[Notification]:
        contract = self._load_contract(contract_id)
        if contract is None:
            return []

        return self.notify_admins(
            NotificationType.APPROVAL_REQUIRED,
            "Aprobación de contrato requerida",
            (
                f"El contrato {contract.contract_number} requiere aprobación "
                f"administrativa. Motivo: {reason}."
            ),
            link=contract_link(contract_id),
            priority=NotificationPriority.HIGH,
            metadata=ApprovalRequiredMetadata(
                contract_id=contract_id,
                contract_number=contract.contract_number,
                reason=reason,
            ),
        )

    def notify_admins_system_event(
        self,
        title: str,
        message: str,
        *,
        notification_type: str | NotificationType = NotificationType.SYSTEM_EVENT,
        priority: NotificationPriority = NotificationPriority.HIGH,
    ) -> list[Notification]:
        return self.notify_admins(
            notification_type,
            title,
            message,
            priority=priority,
            metadata=SystemEventMetadata(timestamp=app_now().isoformat()),
        )

    def broadcast_system_notice(
        self,
        notification_type: str | NotificationType,
        title: str,
        message: str,
        *,
        link: str | None = None,
    ) -> list[Notification]:
        """Notify every active user about maintenance windows or updates."""

        notification_type = NotificationType(notification_type)
        if notification_type not in GLOBAL_NOTICE_TYPES:
            raise ValueError(f"{notification_type.value} is not a global notice type")

        recipients = self.resolver.resolve(
            notification_type, ResolutionContext(event_type=notification_type.value)
        )
        metadata = SystemEventMetadata(timestamp=app_now().isoformat())
        return self._fan_out(
            recipients,
            lambda user_id: Notification(
                id=None,
                recipient_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                link=link,
                metadata=metadata,
            ),
        )

    def _fan_out(
        self,
        recipients: Iterable[int],
        build: Callable[[int], Notification],
    ) -> list[Notification]:
        created: list[Notification] = []
        for user_id in sorted(recipients):
            try:
                created.append(self.create(build(user_id)))
            except NotificationPersistenceError:
                logger.warning("Notification for user %s skipped", user_id)
        return created

    def _resolve_for_contract(
        self,
        notification_type: NotificationType,
        contract_id: int,
        actor_id: int | None = None,
    ) -> set[int]:
        return self.resolver.resolve(
            notification_type,
            ResolutionContext(
                event_type=notification_type.value,
                contract_id=contract_id,
                actor_user_id=actor_id,
            ),
        )

    def _notifiable_users(self, user_ids: Iterable[int]) -> dict[int, User]:
        user_ids = list(user_ids)
        try:
            users = self.users.get_map_by_ids(user_ids)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Could not load notification recipients")
            return {}
        skipped = set(user_ids) - {
            user_id for user_id, user in users.items() if user.can_be_notified()
        }
        for user_id in sorted(skipped):
            logger.info("User %s not found or inactive; not notified", user_id)
        return {
            user_id: user for user_id, user in users.items() if user.can_be_notified()
        }

    def _load_contract(self, contract_id: int) -> Contract | None:
        try:
            contract = self.contracts.get(contract_id)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Could not load contract %s", contract_id)
            return None
        if contract is None:
            logger.info("Contract %s not found", contract_id)
        return contract

    def _load_service(self, service_id: int) -> ContractService | None:
        try:
            service = self.contracts.get_service(service_id)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Could not load contract service %s", service_id)
            return None
        if service is None:
            logger.info("Contract service %s not found", service_id)
        return service

    def _load_user(self, user_id: int | None) -> User | None:
        if user_id is None:
            return None
        try:
            return self.users.get(user_id)
        except (SQLAlchemyError, ValueError):
            self.session.rollback()
            logger.exception("Could not load user %s", user_id)
            return None

    def _enqueue_email(self, name: str, send: Callable[[], bool]) -> None:
        if self.work_queue is None or not email.email_enabled():
            logger.debug("Email %s not queued; delivery is disabled", name)
            return
        self.work_queue.submit(name, partial(_deliver_email, send))


__all__ = [
    "GLOBAL_NOTICE_TYPES",
    "NotificationDispatcher",
    "NotificationPersistenceError",
    "contract_link",
]
