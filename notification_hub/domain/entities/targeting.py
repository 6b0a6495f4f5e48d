"""Value objects describing who should receive an event."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class NotificationPolicy:
    """Targeting rules applied to one event type."""

    include_admins: bool = False
    only_assigned: bool = True
    exclude_actor: bool = True
    is_global: bool = False
    admin_only: bool = False


@dataclass(frozen=True)
class ResolutionContext:
    """Information about the event being resolved into recipients."""

    event_type: str
    contract_id: int | None = None
    actor_user_id: int | None = None
    explicit_recipients: frozenset[int] = field(default_factory=frozenset)


__all__ = ["NotificationPolicy", "ResolutionContext"]
