"""Tests for meetwatch/providers/google_calendar.py"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from meetwatch.errors import TransientExternalFailure
from meetwatch.providers.google_calendar import (
    GoogleCalendarBusySource,
    parse_busy_event,
    query_window,
)


def event(start: str, end: str, **extra) -> dict:
    return {"id": "evt", "start": {"dateTime": start}, "end": {"dateTime": end}, **extra}


@pytest.fixture
def busy_source():
    credentials = MagicMock()
    credentials.get_valid = AsyncMock(return_value="token")
    return GoogleCalendarBusySource(credentials, calendar_id="primary")


class TestParseBusyEvent:
    def test_timed_event_normalized_to_utc(self):
        interval = parse_busy_event(event("2025-07-25T14:00:00-07:00", "2025-07-25T14:30:00-07:00"))
        assert interval.start == datetime(2025, 7, 25, 21, 0, tzinfo=timezone.utc)
        assert interval.end == datetime(2025, 7, 25, 21, 30, tzinfo=timezone.utc)

    def test_z_suffix(self):
        interval = parse_busy_event(event("2025-07-25T21:00:00Z", "2025-07-25T21:30:00Z"))
        assert interval.start.tzinfo == timezone.utc

    @pytest.mark.parametrize(
        "item",
        [
            event("2025-07-25T14:00:00-07:00", "2025-07-25T14:30:00-07:00", status="cancelled"),
            event("2025-07-25T14:00:00-07:00", "2025-07-25T14:30:00-07:00", transparency="transparent"),
            {"id": "holiday", "start": {"date": "2025-07-25"}, "end": {"date": "2025-07-26"}},
            event("2025-07-25T14:30:00-07:00", "2025-07-25T14:00:00-07:00"),
            event("yesterday", "today"),
        ],
    )
    def test_non_blocking_or_broken_events_ignored(self, item):
        assert parse_busy_event(item) is None


class TestQueryWindow:
    def test_padded_around_dates(self):
        start, end = query_window([date(2025, 7, 28), date(2025, 7, 25)])
        assert start == datetime(2025, 7, 24, tzinfo=timezone.utc)
        assert end == datetime(2025, 7, 30, tzinfo=timezone.utc)


class TestGetBusyIntervals:
    @pytest.mark.asyncio
    async def test_empty_dates_make_no_request(self, busy_source):
        with patch.object(busy_source, "_make_request", new=AsyncMock()) as mock_request:
            assert await busy_source.get_busy_intervals([]) == []
        mock_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_follows_pages(self, busy_source):
        pages = [
            {"success": True, "data": {
                "items": [event("2025-07-25T14:00:00-07:00", "2025-07-25T14:30:00-07:00")],
                "nextPageToken": "p2",
            }},
            {"success": True, "data": {
                "items": [event("2025-07-25T16:00:00-07:00", "2025-07-25T17:00:00-07:00")],
            }},
        ]
        with patch.object(busy_source, "_make_request", new=AsyncMock(side_effect=pages)) as mock_request:
            intervals = await busy_source.get_busy_intervals([date(2025, 7, 25)])

        assert len(intervals) == 2
        assert mock_request.await_count == 2
        params = mock_request.call_args.kwargs["params"]
        assert params["pageToken"] == "p2"
        assert params["singleEvents"] == "true"
        assert params["timeMin"] == "2025-07-24T00:00:00Z"
        assert params["timeMax"] == "2025-07-27T00:00:00Z"

    @pytest.mark.asyncio
    async def test_calendar_id_is_escaped(self):
        credentials = MagicMock()
        credentials.get_valid = AsyncMock(return_value="token")
        source = GoogleCalendarBusySource(credentials, calendar_id="en.usa#holiday@group.v.calendar.google.com")
        with patch.object(source, "_make_request", new=AsyncMock(return_value={"success": True, "data": {}})) as mock_request:
            await source.get_busy_intervals([date(2025, 7, 25)])

        url = mock_request.call_args.args[1]
        assert url.endswith("/calendars/en.usa%23holiday@group.v.calendar.google.com/events")

    @pytest.mark.asyncio
    async def test_failure_raises_typed_error(self, busy_source):
        failure = {"success": False, "error": "backend error", "status": 503, "retryable": True}
        with patch.object(busy_source, "_make_request", new=AsyncMock(return_value=failure)):
            with pytest.raises(TransientExternalFailure) as exc_info:
                await busy_source.get_busy_intervals([date(2025, 7, 25)])
        assert exc_info.value.service == "calendar"
