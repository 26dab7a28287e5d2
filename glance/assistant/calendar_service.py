"""ICS/WebCal lookups for the "next event" and "today's agenda" intents."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

import httpx
from icalendar import Calendar

from glance.datetime_utils import coerce_datetime, day_bounds, format_clock_time

from .config import CalendarConfig
from .errors import FetchError, ParseError

LOGGER = logging.getLogger("glance.calendar")

UNTITLED = "Untitled"
NO_UPCOMING_EVENTS = "No upcoming events."


@dataclass(slots=True, frozen=True)
class CalendarEvent:
    """Normalized VEVENT taken from a single feed fetch."""

    summary: str
    start: datetime
    end: datetime | None = None
    all_day: bool = False

    @property
    def title(self) -> str:
        return self.summary.strip() or UNTITLED


def parse_events(feed_text: str, now: datetime) -> list[CalendarEvent]:
    """Parse every VEVENT in ``feed_text`` in feed order.

    Floating and date-only start times are read in ``now``'s timezone. Events
    without a usable DTSTART are skipped.
    """
    try:
        calendar = Calendar.from_ical(feed_text)
    except (ValueError, IndexError, KeyError, TypeError) as exc:
        raise ParseError(f"Calendar feed could not be parsed: {exc}") from exc

    tz = now.tzinfo
    events: list[CalendarEvent] = []
    for component in calendar.walk("VEVENT"):
        try:
            start_value = component.decoded("DTSTART")
        except (KeyError, ValueError):
            continue
        start_dt, all_day = coerce_datetime(start_value, tz)
        if start_dt is None:
            continue
        end_dt = None
        try:
            end_value = component.decoded("DTEND")
        except (KeyError, ValueError):
            end_value = None
        if end_value is not None:
            end_dt, _ = coerce_datetime(end_value, tz)
        summary = str(component.get("SUMMARY") or "")
        events.append(CalendarEvent(summary=summary, start=start_dt, end=end_dt, all_day=all_day))
    return events


def next_event(feed_text: str, now: datetime) -> CalendarEvent | None:
    """Return the earliest event starting strictly after ``now``.

    Ties keep feed order.
    """
    now = now if now.tzinfo else now.astimezone()
    upcoming = [event for event in parse_events(feed_text, now) if event.start > now]
    if not upcoming:
        return None
    return min(upcoming, key=lambda event: event.start)


def today_events(feed_text: str, now: datetime) -> list[CalendarEvent]:
    """Return events starting within ``now``'s calendar day, ordered by start."""
    now = now if now.tzinfo else now.astimezone()
    day_start, day_end = day_bounds(now)
    todays = [event for event in parse_events(feed_text, now) if day_start <= event.start <= day_end]
    return sorted(todays, key=lambda event: event.start)


class CalendarService:
    """Fetch the configured feed and render event lookups for the display."""

    def __init__(
        self,
        config: CalendarConfig,
        *,
        client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self._logger = logger or LOGGER
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True, timeout=config.timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_feed(self) -> str:
        url = self.config.feed_url
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            self._logger.warning("[calendar] Calendar fetch failed for %s: %s", url, exc)
            raise FetchError(f"Calendar fetch failed: {exc}") from exc
        if not response.is_success:
            self._logger.warning("[calendar] Calendar fetch returned %s for %s", response.status_code, url)
            raise FetchError(f"Calendar fetch returned HTTP {response.status_code}")
        return response.text

    def next_event(self, feed_text: str, now: datetime) -> CalendarEvent | None:
        return next_event(feed_text, now)

    def today_events(self, feed_text: str, now: datetime) -> list[CalendarEvent]:
        return today_events(feed_text, now)

    def format_time(self, event: CalendarEvent) -> str:
        return format_clock_time(event.start, clock_24h=self.config.clock_24h, tz=self.config.timezone)

    def format_next_event(self, event: CalendarEvent | None) -> str:
        if event is None:
            return NO_UPCOMING_EVENTS
        return f"Next event: {event.title} at {self.format_time(event)}"

    def format_agenda(self, events: Sequence[CalendarEvent]) -> str:
        return "\n".join(f"{event.title} | {self.format_time(event)}" for event in events)
