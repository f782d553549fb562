"""Time source and timezone helpers for meeting scheduling.

The core never calls ``datetime.now`` directly; it asks an injected Clock
so tests can pin the current instant.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Clock(Protocol):
    """Anything that can report the current aware UTC instant."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def resolve_timezone(name: str) -> ZoneInfo:
    """Return the IANA zone for ``name``.

    Raises:
        ValueError: If the zone name is unknown.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def localize(moment: datetime, tz_name: str) -> datetime:
    """Interpret a naive instant in ``tz_name``; aware instants are kept as-is."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=resolve_timezone(tz_name))
    return moment


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, rounded to nearest."""
    return round((end - start).total_seconds() / 60)


__all__ = ["Clock", "SystemClock", "localize", "minutes_between", "resolve_timezone"]
