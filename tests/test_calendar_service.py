"""Tests for calendar feed retrieval and filtering."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import Mock

import httpx
import pytest
from glance.assistant.calendar_service import (
    NO_UPCOMING_EVENTS,
    CalendarEvent,
    CalendarService,
    next_event,
    parse_events,
    today_events,
)
from glance.assistant.errors import FetchError, ParseError

pytestmark = pytest.mark.anyio

EASTERN = timezone(timedelta(hours=-5))
NOW = datetime(2025, 3, 12, 9, 30, tzinfo=EASTERN)


def _service(config, handler) -> CalendarService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CalendarService(config.calendar, client=client)


class TestParseEvents:
    def test_keeps_feed_order(self, make_feed):
        feed = make_feed(("B", NOW + timedelta(hours=2)), ("A", NOW + timedelta(hours=1)))
        events = parse_events(feed, NOW)
        assert [event.summary for event in events] == ["B", "A"]

    def test_start_times_are_timezone_aware(self, make_feed):
        feed = make_feed(("Standup", NOW + timedelta(hours=1)))
        (event,) = parse_events(feed, NOW)
        assert event.start.tzinfo is not None
        assert event.start == NOW + timedelta(hours=1)

    def test_all_day_event_starts_at_local_midnight(self):
        feed = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Glance Test//EN
BEGIN:VEVENT
UID:all-day@example.com
DTSTART;VALUE=DATE:20250312
SUMMARY:Conference
END:VEVENT
END:VCALENDAR
"""
        (event,) = parse_events(feed, NOW)
        assert event.all_day is True
        assert event.start == datetime(2025, 3, 12, 0, 0, tzinfo=EASTERN)

    def test_floating_time_uses_callers_timezone(self):
        feed = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Glance Test//EN
BEGIN:VEVENT
UID:floating@example.com
DTSTART:20250312T140000
SUMMARY:Lunch
END:VEVENT
END:VCALENDAR
"""
        (event,) = parse_events(feed, NOW)
        assert event.start == datetime(2025, 3, 12, 14, 0, tzinfo=EASTERN)

    def test_event_without_start_is_skipped(self):
        feed = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Glance Test//EN
BEGIN:VEVENT
UID:nostart@example.com
SUMMARY:Someday
END:VEVENT
END:VCALENDAR
"""
        assert parse_events(feed, NOW) == []

    def test_malformed_feed_raises_parse_error(self):
        with pytest.raises(ParseError):
            parse_events("this is not a calendar", NOW)

    def test_dtend_is_parsed(self):
        feed = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Glance Test//EN
BEGIN:VEVENT
UID:ends@example.com
DTSTART:20250312T150000Z
DTEND:20250312T160000Z
SUMMARY:Review
END:VEVENT
END:VCALENDAR
"""
        (event,) = parse_events(feed, NOW)
        assert event.end == datetime(2025, 3, 12, 16, 0, tzinfo=UTC)


class TestNextEvent:
    def test_skips_past_events(self, make_feed):
        feed = make_feed(("Past", NOW - timedelta(minutes=30)), ("Future", NOW + timedelta(minutes=30)))
        event = next_event(feed, NOW)
        assert event is not None
        assert event.summary == "Future"

    def test_returns_earliest_future_event(self, make_feed):
        feed = make_feed(
            ("Later", NOW + timedelta(hours=3)),
            ("Soonest", NOW + timedelta(minutes=5)),
            ("Middle", NOW + timedelta(hours=1)),
        )
        assert next_event(feed, NOW).summary == "Soonest"

    def test_event_starting_now_is_not_next(self, make_feed):
        feed = make_feed(("Now", NOW), ("After", NOW + timedelta(minutes=1)))
        assert next_event(feed, NOW).summary == "After"

    def test_ties_keep_feed_order(self, make_feed):
        start = NOW + timedelta(hours=1)
        feed = make_feed(("First", start), ("Second", start))
        assert next_event(feed, NOW).summary == "First"

    def test_no_future_events_returns_none(self, make_feed):
        feed = make_feed(("Past", NOW - timedelta(days=1)))
        assert next_event(feed, NOW) is None

    def test_empty_calendar_returns_none(self, make_feed):
        assert next_event(make_feed(), NOW) is None

    def test_naive_now_is_read_as_local_time(self, make_feed):
        naive = datetime(2025, 3, 12, 12, 0)
        local = naive.astimezone()
        feed = make_feed(("Earlier", local - timedelta(hours=1)), ("Standup", local + timedelta(hours=1)))
        event = next_event(feed, naive)
        assert event is not None
        assert event.summary == "Standup"

    def test_idempotent(self, make_feed):
        feed = make_feed(("A", NOW + timedelta(hours=2)), ("B", NOW + timedelta(hours=1)))
        assert next_event(feed, NOW) == next_event(feed, NOW)


class TestTodayEvents:
    def test_orders_by_start_time(self, make_feed):
        feed = make_feed(
            ("Afternoon", NOW.replace(hour=15)),
            ("Morning", NOW.replace(hour=8)),
            ("Noon", NOW.replace(hour=12)),
        )
        assert [event.summary for event in today_events(feed, NOW)] == ["Morning", "Noon", "Afternoon"]

    def test_includes_events_earlier_today(self, make_feed):
        feed = make_feed(("Breakfast", NOW.replace(hour=7)))
        assert [event.summary for event in today_events(feed, NOW)] == ["Breakfast"]

    def test_excludes_other_days(self, make_feed):
        feed = make_feed(
            ("Yesterday", NOW - timedelta(days=1)),
            ("Today", NOW.replace(hour=11)),
            ("Tomorrow", NOW + timedelta(days=1)),
        )
        assert [event.summary for event in today_events(feed, NOW)] == ["Today"]

    def test_day_window_is_inclusive(self, make_feed):
        feed = make_feed(
            ("Midnight", NOW.replace(hour=0, minute=0, second=0)),
            ("Last second", NOW.replace(hour=23, minute=59, second=59)),
            ("Next midnight", NOW.replace(hour=0, minute=0, second=0) + timedelta(days=1)),
        )
        assert [event.summary for event in today_events(feed, NOW)] == ["Midnight", "Last second"]

    def test_day_boundary_follows_callers_timezone(self, make_feed):
        # 03:00 UTC on the 13th is still the evening of the 12th in UTC-5.
        late = datetime(2025, 3, 13, 3, 0, tzinfo=UTC)
        feed = make_feed(("Late call", late))
        assert [event.summary for event in today_events(feed, NOW)] == ["Late call"]
        assert today_events(feed, NOW.astimezone(UTC).replace(hour=12)) == []

    def test_no_events_today_returns_empty_list(self, make_feed):
        feed = make_feed(("Next week", NOW + timedelta(days=7)))
        assert today_events(feed, NOW) == []

    def test_idempotent(self, make_feed):
        feed = make_feed(("A", NOW.replace(hour=10)), ("B", NOW.replace(hour=9)))
        assert today_events(feed, NOW) == today_events(feed, NOW)

    def test_naive_now_is_read_as_local_time(self, make_feed):
        naive = datetime(2025, 3, 12, 12, 0)
        local = naive.astimezone()
        feed = make_feed(("Lunch", local + timedelta(minutes=30)), ("Tomorrow", local + timedelta(days=1)))
        assert [event.summary for event in today_events(feed, naive)] == ["Lunch"]


class TestFormatting:
    def test_untitled_summary(self):
        event = CalendarEvent(summary="   ", start=NOW)
        assert event.title == "Untitled"

    def test_format_next_event(self, config):
        service = CalendarService(config.calendar, client=Mock(spec=httpx.AsyncClient))
        event = CalendarEvent(summary="Standup", start=NOW.replace(hour=10, minute=0))
        assert service.format_next_event(event) == "Next event: Standup at 10:00 AM"

    def test_format_next_event_none(self, config):
        service = CalendarService(config.calendar, client=Mock(spec=httpx.AsyncClient))
        assert service.format_next_event(None) == NO_UPCOMING_EVENTS

    def test_format_agenda_lines(self, config):
        service = CalendarService(config.calendar, client=Mock(spec=httpx.AsyncClient))
        events = [
            CalendarEvent(summary="Standup", start=NOW.replace(hour=9, minute=5)),
            CalendarEvent(summary="", start=NOW.replace(hour=13, minute=30)),
        ]
        assert service.format_agenda(events) == "Standup | 9:05 AM\nUntitled | 1:30 PM"

    def test_format_agenda_empty(self, config):
        service = CalendarService(config.calendar, client=Mock(spec=httpx.AsyncClient))
        assert service.format_agenda([]) == ""

    def test_24_hour_clock(self, make_config):
        config = make_config(GLANCE_CLOCK_24H="true")
        service = CalendarService(config.calendar, client=Mock(spec=httpx.AsyncClient))
        event = CalendarEvent(summary="Review", start=NOW.replace(hour=15, minute=0))
        assert service.format_next_event(event) == "Next event: Review at 15:00"

    def test_display_timezone_converts_start(self, make_config):
        config = make_config(GLANCE_TIMEZONE="UTC")
        service = CalendarService(config.calendar, client=Mock(spec=httpx.AsyncClient))
        event = CalendarEvent(summary="Sync", start=NOW.replace(hour=10, minute=0))
        assert service.format_time(event) == "3:00 PM"


class TestFetchFeed:
    async def test_returns_body(self, config, make_feed):
        feed = make_feed(("Standup", NOW))

        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == config.calendar.feed_url
            return httpx.Response(200, text=feed)

        service = _service(config, handler)
        assert await service.fetch_feed() == feed

    async def test_non_success_status_raises_fetch_error(self, config):
        service = _service(config, lambda request: httpx.Response(404, text="gone"))
        with pytest.raises(FetchError, match="404"):
            await service.fetch_feed()

    async def test_network_error_raises_fetch_error(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        service = _service(config, handler)
        with pytest.raises(FetchError):
            await service.fetch_feed()

    async def test_injected_client_is_not_closed(self, config):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        service = CalendarService(config.calendar, client=client)
        await service.close()
        assert client.is_closed is False
        await client.aclose()

