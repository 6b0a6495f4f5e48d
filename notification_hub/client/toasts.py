"""Short-lived on-screen messages, separate from the durable history."""

from __future__ import annotations

import itertools
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .storage import CachedNotification


class ToastKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Toast:
    id: int
    kind: ToastKind
    title: str
    message: str
    duration: float
    created_at: float
    persistent: bool = False
    notification_id: str | None = None

    def expired(self, now: float) -> bool:
        return not self.persistent and now - self.created_at >= self.duration


class ToastQueue:
    """Hold at most ``max_items`` toasts; a new one evicts the oldest."""

    def __init__(
        self,
        max_items: int = 3,
        *,
        default_duration: float = 5.0,
        error_duration: float = 7.0,
        high_priority_duration: float = 8.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_items = max_items
        self.default_duration = default_duration
        self.error_duration = error_duration
        self.high_priority_duration = high_priority_duration
        self._clock = clock
        self._items: deque[Toast] = deque()
        self._ids = itertools.count(1)

    def show(
        self,
        kind: ToastKind,
        title: str,
        message: str,
        *,
        duration: float | None = None,
        persistent: bool = False,
        notification_id: str | None = None,
    ) -> Toast:
        self._expire()
        if duration is None:
            duration = self.error_duration if kind is ToastKind.ERROR else self.default_duration
        toast = Toast(
            id=next(self._ids),
            kind=kind,
            title=title,
            message=message,
            duration=duration,
            created_at=self._clock(),
            persistent=persistent,
            notification_id=notification_id,
        )
        while len(self._items) >= self.max_items:
            self._items.popleft()
        self._items.append(toast)
        return toast

    def success(self, message: str, title: str = "¡Listo!", **options) -> Toast:
        return self.show(ToastKind.SUCCESS, title, message, **options)

    def error(self, message: str, title: str = "¡Error!", **options) -> Toast:
        return self.show(ToastKind.ERROR, title, message, **options)

    def warning(self, message: str, title: str = "Atención", **options) -> Toast:
        return self.show(ToastKind.WARNING, title, message, **options)

    def info(self, message: str, title: str = "Información", **options) -> Toast:
        return self.show(ToastKind.INFO, title, message, **options)

    def show_notification(self, entry: CachedNotification) -> Toast:
        """Toast a pushed notification; high priority ones stay longer."""

        kind = ToastKind.ERROR if entry.type == ToastKind.ERROR.value else ToastKind.INFO
        if entry.priority == "high":
            duration = self.high_priority_duration
        elif kind is ToastKind.ERROR:
            duration = self.error_duration
        else:
            duration = self.default_duration
        return self.show(
            kind, entry.title, entry.message, duration=duration, notification_id=entry.id
        )

    def active(self) -> list[Toast]:
        self._expire()
        return list(self._items)

    def dismiss(self, toast_id: int) -> bool:
        for toast in self._items:
            if toast.id == toast_id:
                self._items.remove(toast)
                return True
        return False

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self.active())

    def _expire(self) -> None:
        now = self._clock()
        self._items = deque(toast for toast in self._items if not toast.expired(now))


__all__ = ["Toast", "ToastKind", "ToastQueue"]
