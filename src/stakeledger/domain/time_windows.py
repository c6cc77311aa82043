"""Clock, ISO-8601 helpers and the windows derived from them."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    """Render a UTC timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""

    value = ensure_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso(value: object) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix accepted); return ``None`` if invalid."""

    if not isinstance(value, str) or not value.strip():
        return None
    normalized = value.strip()
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return _parse_nanosecond_iso(normalized)
    return ensure_utc(parsed)


def _parse_nanosecond_iso(value: str) -> datetime | None:
    # Tendermint block times carry nanoseconds, which fromisoformat rejects.
    head, dot, tail = value.partition(".")
    if not dot:
        return None
    digits = ""
    for char in tail:
        if not char.isdigit():
            break
        digits += char
    suffix = tail[len(digits) :]
    try:
        parsed = datetime.fromisoformat(f"{head}.{digits[:6].ljust(6, '0')}{suffix}")
    except ValueError:
        return None
    return ensure_utc(parsed)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive values as UTC and convert aware ones."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def days_before(now: datetime, days: float) -> datetime:
    """Start of a retention window ending at ``now``."""

    if days < 0:
        raise ValueError("Retention window must be non-negative")
    return ensure_utc(now) - timedelta(days=days)


def overlap_cursor(overlap_hours: float, *, now: datetime) -> datetime:
    """Return ``now - overlap``: the point the next incremental run re-scans from."""

    if overlap_hours < 0:
        raise ValueError("Overlap must be non-negative")
    return ensure_utc(now) - timedelta(hours=overlap_hours)


__all__ = [
    "Clock",
    "days_before",
    "ensure_utc",
    "overlap_cursor",
    "parse_iso",
    "to_iso",
    "utcnow",
]
