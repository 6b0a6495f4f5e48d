"""Utility helpers for reusable functionality."""

from .datetime import (
    app_now,
    app_now_naive,
    app_timezone,
    localize,
    parse_timezone,
    to_storage,
)

__all__ = [
    "app_now",
    "app_now_naive",
    "app_timezone",
    "localize",
    "parse_timezone",
    "to_storage",
]
