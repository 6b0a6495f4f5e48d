"""Clock helpers bound to the application timezone.

Notification timestamps are stored as naive local datetimes; the domain works
with aware values. ``to_storage`` and ``localize`` convert between the two.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from notification_hub.config import get_settings

FALLBACK_TIMEZONE = "America/Sao_Paulo"

_UTC_OFFSET = re.compile(r"^(?:UTC|GMT)\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)


def parse_timezone(name: str | None) -> tzinfo:
    """Resolve an IANA zone name or a ``UTC-03:00`` style offset.

    Unknown names resolve to :data:`FALLBACK_TIMEZONE`.
    """

    name = (name or "").strip() or FALLBACK_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        pass

    match = _UTC_OFFSET.match(name)
    if match is None:
        return ZoneInfo(FALLBACK_TIMEZONE)
    sign, hours, minutes = match.groups()
    offset = timedelta(hours=int(hours), minutes=int(minutes or 0))
    return timezone(-offset if sign == "-" else offset)


@lru_cache(maxsize=1)
def app_timezone() -> tzinfo:
    return parse_timezone(get_settings().app_timezone)


def app_now() -> datetime:
    return datetime.now(tz=app_timezone())


def app_now_naive() -> datetime:
    """Current local time as stored in the database."""

    return app_now().replace(tzinfo=None)


def localize(value: datetime | None) -> datetime | None:
    """Express ``value`` in the app timezone; naive values are taken as local."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=app_timezone())
    return value.astimezone(app_timezone())


def to_storage(value: datetime | None) -> datetime | None:
    localized = localize(value)
    return localized.replace(tzinfo=None) if localized is not None else None


__all__ = [
    "FALLBACK_TIMEZONE",
    "app_now",
    "app_now_naive",
    "app_timezone",
    "localize",
    "parse_timezone",
    "to_storage",
]
