from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Timestamps are stored as naive UTC so SQLite and PostgreSQL compare them alike.
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def event_zone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def local_midnight_utc(now_utc: datetime, zone_name: str | None) -> datetime:
    """Start of the current local day in ``zone_name``, as naive UTC."""
    zone = event_zone(zone_name)
    local_now = now_utc.replace(tzinfo=timezone.utc).astimezone(zone)
    midnight = datetime.combine(local_now.date(), time.min, tzinfo=zone)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)
