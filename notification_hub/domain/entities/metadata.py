"""Typed metadata attached to notifications.

Each notification type carries a known set of fields. Payloads whose type has
no registered variant, or that lack a required field, are kept verbatim in
:class:`OpaqueMetadata` so that newer producers never lose data on old readers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import MISSING, asdict, dataclass, field, fields
from typing import Any, Callable, ClassVar, TypeVar

from .notification_type import NotificationType

_VARIANTS: dict[str, type["NotificationMetadata"]] = {}

_M = TypeVar("_M", bound=type["NotificationMetadata"])


def _variant(notification_type: NotificationType) -> Callable[[_M], _M]:
    def register(cls: _M) -> _M:
        cls.notification_type = notification_type
        _VARIANTS[notification_type.value] = cls
        return cls

    return register


@dataclass(frozen=True)
class NotificationMetadata:
    """Base class for metadata variants."""

    notification_type: ClassVar[NotificationType | None] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object stored alongside the notification."""

        return asdict(self)

    def related_contract_id(self) -> int | None:
        value = self.to_dict().get("contract_id")
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None


@_variant(NotificationType.CONTRACT_ASSIGNMENT)
@dataclass(frozen=True)
class ContractAssignmentMetadata(NotificationMetadata):
    contract_id: int
    assigner_id: int | None = None


@_variant(NotificationType.PERMISSION_CHANGE)
@dataclass(frozen=True)
class PermissionChangeMetadata(NotificationMetadata):
    contract_id: int
    new_role: str
    changer_id: int | None = None


@_variant(NotificationType.CONTRACT_EXPIRING)
@dataclass(frozen=True)
class ContractExpiringMetadata(NotificationMetadata):
    contract_id: int
    days_until_expiration: int


@_variant(NotificationType.PAYMENT_OVERDUE)
@dataclass(frozen=True)
class PaymentOverdueMetadata(NotificationMetadata):
    contract_id: int
    days_overdue: int


@_variant(NotificationType.PAYMENT_RECEIVED)
@dataclass(frozen=True)
class PaymentReceivedMetadata(NotificationMetadata):
    contract_id: int
    installment_id: int | None = None
    actor_id: int | None = None


@_variant(NotificationType.SERVICE_COMMENT)
@dataclass(frozen=True)
class ServiceCommentMetadata(NotificationMetadata):
    contract_id: int
    service_id: int
    comment_preview: str = ""
    author_id: int | None = None


@_variant(NotificationType.SERVICE_STATUS_CHANGE)
@dataclass(frozen=True)
class ServiceStatusChangeMetadata(NotificationMetadata):
    contract_id: int
    service_id: int
    new_status: str
    changed_by: int | None = None


@_variant(NotificationType.NEW_CONTRACT)
@dataclass(frozen=True)
class NewContractMetadata(NotificationMetadata):
    contract_id: int
    contract_number: str
    creator_id: int | None = None
    client_name: str | None = None


@_variant(NotificationType.NEW_USER)
@dataclass(frozen=True)
class NewUserMetadata(NotificationMetadata):
    new_user_id: int
    creator_id: int | None = None


@_variant(NotificationType.SECURITY_ALERT)
@dataclass(frozen=True)
class SecurityAlertMetadata(NotificationMetadata):
    email: str
    ip_address: str
    attempt_count: int
    timestamp: str | None = None


@_variant(NotificationType.APPROVAL_REQUIRED)
@dataclass(frozen=True)
class ApprovalRequiredMetadata(NotificationMetadata):
    contract_id: int
    contract_number: str
    reason: str


@_variant(NotificationType.SYSTEM_EVENT)
@dataclass(frozen=True)
class SystemEventMetadata(NotificationMetadata):
    system_event: bool = True
    timestamp: str | None = None


@dataclass(frozen=True)
class OpaqueMetadata(NotificationMetadata):
    """Metadata for types without a registered variant."""

    values: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.values)


def parse_metadata(
    notification_type: str | NotificationType, raw: Mapping[str, Any] | None
) -> NotificationMetadata:
    """Build the metadata variant registered for ``notification_type``."""

    payload = dict(raw or {})
    key = (
        notification_type.value
        if isinstance(notification_type, NotificationType)
        else str(notification_type)
    )
    variant = _VARIANTS.get(key)
    if variant is None:
        return OpaqueMetadata(values=payload)

    variant_fields = fields(variant)
    required = {
        item.name
        for item in variant_fields
        if item.default is MISSING and item.default_factory is MISSING
    }
    if not required.issubset(payload):
        return OpaqueMetadata(values=payload)

    known = {item.name: payload[item.name] for item in variant_fields if item.name in payload}
    return variant(**known)


__all__ = [
    "ApprovalRequiredMetadata",
    "ContractAssignmentMetadata",
    "ContractExpiringMetadata",
    "NewContractMetadata",
    "NewUserMetadata",
    "NotificationMetadata",
    "OpaqueMetadata",
    "PaymentOverdueMetadata",
    "PaymentReceivedMetadata",
    "PermissionChangeMetadata",
    "SecurityAlertMetadata",
    "ServiceCommentMetadata",
    "ServiceStatusChangeMetadata",
    "SystemEventMetadata",
    "parse_metadata",
]
