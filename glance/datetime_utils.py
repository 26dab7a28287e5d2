"""Shared datetime helpers for calendar filtering and display formatting."""

from __future__ import annotations

from datetime import date, datetime, time, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DAY_END = time(23, 59, 59)


def local_now(tz: tzinfo | None = None) -> datetime:
    """Get current datetime in the given timezone (host local time by default)."""
    if tz is None:
        return datetime.now().astimezone()
    return datetime.now(tz)


def coerce_datetime(value, tz: tzinfo | None) -> tuple[datetime | None, bool]:
    """Normalize an iCalendar DTSTART/DTEND value.

    Returns ``(datetime, all_day)``. Date-only values land on local midnight and
    floating times are read in ``tz``.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=tz)
        return value.astimezone(tz), False
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=tz), True
    return None, False


def day_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Return the inclusive ``[00:00:00, 23:59:59]`` window of ``now``'s calendar date."""
    tz = now.tzinfo
    today = now.date()
    return datetime.combine(today, time.min, tzinfo=tz), datetime.combine(today, DAY_END, tzinfo=tz)


def format_clock_time(dt: datetime, *, clock_24h: bool = False, tz: tzinfo | None = None) -> str:
    """Render a wall-clock time such as ``9:05 AM`` or ``09:05``."""
    local = dt.astimezone(tz) if tz is not None else dt
    if clock_24h:
        return local.strftime("%H:%M")
    return local.strftime("%I:%M %p").lstrip("0")


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Look up an IANA zone name; ``None`` means host local time."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None
