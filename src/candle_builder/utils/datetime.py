"""Datetime helpers shared across the project."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum


class Duration(str, Enum):
    """Width of an aggregation bucket."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"

    def floor(self, ts: datetime) -> datetime:
        """Truncate ``ts`` to the start of its bucket in UTC."""

        value = ensure_utc(ts)
        if self is Duration.MINUTE:
            return value.replace(second=0, microsecond=0)
        if self is Duration.HOUR:
            return value.replace(minute=0, second=0, microsecond=0)
        return value.replace(hour=0, minute=0, second=0, microsecond=0)


def ensure_utc(ts: datetime) -> datetime:
    """Force a naive datetime into UTC for API compatibility."""

    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_iso8601(value: str) -> datetime:
    """Parse an ISO8601 string and return a timezone-aware datetime in UTC."""

    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"

    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:  # pragma: no cover - defensive guard
        raise ValueError(f"Invalid ISO8601 datetime: {value}") from exc

    return ensure_utc(parsed)


def from_epoch_ms(value: int | float | str) -> datetime:
    """Convert an exchange millisecond timestamp into an aware UTC datetime."""

    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
