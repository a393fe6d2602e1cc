"""Utilities for working with timestamps in UTC."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

Instant = Union[datetime, str]


def utc_now() -> datetime:
    """Current instant, UTC-aware."""

    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Give ``dt`` a UTC tzinfo; naive values are read as UTC."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_instant(value: Optional[Instant]) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) or pass a datetime through."""

    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


__all__ = ["Instant", "utc_now", "ensure_utc", "parse_instant"]
