"""Durable client-side history of notifications."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

HISTORY_KEY = "notification_history"
UNREAD_COUNT_KEY = "notification_unread_count"
DEFAULT_CAPACITY = 100

_SERVER_ID_PATTERN = re.compile(r"^server-(\d+)$")


class KeyValueStorage(Protocol):
    """Minimal string key-value store used for the client cache."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStorage:
    """Storage that lives as long as the process."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileStorage:
    """Storage backed by one JSON object on disk, rewritten atomically."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            values = self._read()
            values[key] = value
            self._write(values)

    def delete(self, key: str) -> None:
        with self._lock:
            values = self._read()
            if values.pop(key, None) is not None:
                self._write(values)

    def _read(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable client cache at %s", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}

    def _write(self, values: Mapping[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".notifications-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(dict(values), handle)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def local_id_for(server_id: int) -> str:
    return f"server-{server_id}"


def extract_server_id(local_id: str) -> int | None:
    """Return the server id embedded in ``local_id`` or ``None``."""

    match = _SERVER_ID_PATTERN.match(local_id or "")
    return int(match.group(1)) if match else None


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class CachedNotification:
    """Client copy of a notification, keyed by a locally built id."""

    id: str
    type: str
    title: str
    message: str
    created_at: datetime | None = None
    is_read: bool = False
    read_at: datetime | None = None
    link: str | None = None
    priority: str = "normal"
    metadata: dict[str, Any] = field(default_factory=dict)
    user_id: int | None = None

    @property
    def server_id(self) -> int | None:
        return extract_server_id(self.id)

    @property
    def contract_id(self) -> int | None:
        value = self.metadata.get("contract_id")
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "CachedNotification":
        """Build an entry from the API or push representation."""

        return cls(
            id=local_id_for(int(payload["id"])),
            type=str(payload.get("type") or "info"),
            title=str(payload.get("title") or ""),
            message=str(payload.get("message") or ""),
            created_at=_parse_datetime(payload.get("created_at")),
            is_read=bool(payload.get("is_read", False)),
            read_at=_parse_datetime(payload.get("read_at")),
            link=payload.get("link"),
            priority=str(payload.get("priority") or "normal"),
            metadata=dict(payload.get("metadata") or {}),
            user_id=payload.get("user_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        data["read_at"] = self.read_at.isoformat() if self.read_at else None
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CachedNotification":
        return cls(
            id=str(data["id"]),
            type=str(data.get("type") or "info"),
            title=str(data.get("title") or ""),
            message=str(data.get("message") or ""),
            created_at=_parse_datetime(data.get("created_at")),
            is_read=bool(data.get("is_read", False)),
            read_at=_parse_datetime(data.get("read_at")),
            link=data.get("link"),
            priority=str(data.get("priority") or "normal"),
            metadata=dict(data.get("metadata") or {}),
            user_id=data.get("user_id"),
        )


class BoundedHistoryCache:
    """Keep the ``capacity`` most recent entries in a key-value storage."""

    def __init__(self, storage: KeyValueStorage, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.storage = storage
        self.capacity = capacity

    def load(self) -> list[CachedNotification]:
        raw = self.storage.get(HISTORY_KEY)
        if not raw:
            return []
        try:
            items = json.loads(raw)
            entries = [CachedNotification.from_dict(item) for item in items]
        except (json.JSONDecodeError, TypeError, KeyError, ValueError):
            logger.warning("Discarding corrupt notification history")
            self.storage.delete(HISTORY_KEY)
            return []
        return entries[: self.capacity]

    def save(self, entries: Iterable[CachedNotification]) -> list[CachedNotification]:
        """Persist the newest entries; ``entries`` must be ordered newest first."""

        kept = list(entries)[: self.capacity]
        self.storage.set(HISTORY_KEY, json.dumps([entry.to_dict() for entry in kept]))
        return kept

    def load_unread_count(self) -> int | None:
        """Last unread count saved, or ``None`` when nothing usable is stored."""

        raw = self.storage.get(UNREAD_COUNT_KEY)
        if raw is None:
            return None
        try:
            return max(0, int(raw))
        except ValueError:
            return None

    def save_unread_count(self, count: int) -> None:
        self.storage.set(UNREAD_COUNT_KEY, str(max(0, count)))

    def clear(self) -> None:
        self.storage.delete(HISTORY_KEY)
        self.storage.delete(UNREAD_COUNT_KEY)


__all__ = [
    "DEFAULT_CAPACITY",
    "BoundedHistoryCache",
    "CachedNotification",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "extract_server_id",
    "local_id_for",
]
