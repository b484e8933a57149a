"""UTC helpers.

Every timestamp stored or compared by the backend is an aware UTC datetime.
Civil time zones only appear at the edges: parsing naive client input and
rendering local times in responses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import settings

UTC = timezone.utc


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def as_utc(value: datetime) -> datetime:
    """Normalise a datetime read back from the database to aware UTC.

    Some drivers (SQLite) drop tzinfo on the way out; those values were
    written as UTC so they are tagged rather than shifted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _zone(tz_name: str | None) -> ZoneInfo:
    name = tz_name or settings.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"timezone '{name}' is not a valid Olson timezone string") from exc


def from_local(value: datetime, tz_name: str | None = None) -> datetime:
    """Convert client input to UTC; naive values are wall-clock time in *tz_name*."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=_zone(tz_name))
    return value.astimezone(UTC)


def to_local(value: datetime, tz_name: str | None = None) -> datetime:
    """Render an absolute timestamp in the civil zone *tz_name* (default zone if omitted)."""
    return as_utc(value).astimezone(_zone(tz_name))
