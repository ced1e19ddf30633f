"""
Tool: Google Calendar Busy Source
Purpose: Busy intervals from Google Calendar events, as UTC instants

The query window runs from one day before the earliest requested date to
two days after the latest, in UTC, so a working day in any timezone on
those dates is covered. Cancelled events, events marked free
(transparency "transparent") and all-day events are ignored.

Usage:
    from meetwatch.providers.google_calendar import GoogleCalendarBusySource

    busy_source = GoogleCalendarBusySource(credentials, calendar_id="primary")
    busy = await busy_source.get_busy_intervals([date(2025, 7, 25)])
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from urllib.parse import quote

from meetwatch.logging_config import get_logger
from meetwatch.models import BusyInterval
from meetwatch.providers.base import BusySource
from meetwatch.providers.google_api import GoogleApiClient

logger = get_logger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
MAX_PAGES = 10


def query_window(dates: list[date]) -> tuple[datetime, datetime]:
    """UTC window wide enough for every working day on the given dates."""
    start = datetime.combine(min(dates) - timedelta(days=1), time(0), tzinfo=timezone.utc)
    end = datetime.combine(max(dates) + timedelta(days=2), time(0), tzinfo=timezone.utc)
    return start, end


def parse_busy_event(item: dict[str, Any]) -> BusyInterval | None:
    """Convert a Calendar event resource to a BusyInterval, or None if it does not block time."""
    if item.get("status") == "cancelled" or item.get("transparency") == "transparent":
        return None

    start_data = item.get("start", {})
    end_data = item.get("end", {})
    if "dateTime" not in start_data or "dateTime" not in end_data:
        return None  # all-day

    try:
        start = datetime.fromisoformat(start_data["dateTime"].replace("Z", "+00:00"))
        end = datetime.fromisoformat(end_data["dateTime"].replace("Z", "+00:00"))
        return BusyInterval(start=start, end=end)
    except ValueError as e:
        logger.warning(f"Skipping calendar event {item.get('id')}: {e}")
        return None


class GoogleCalendarBusySource(GoogleApiClient, BusySource):
    """Busy source backed by a Google Calendar's events."""

    service = "calendar"

    def __init__(self, credentials, calendar_id: str = "primary", request_timeout_seconds: float = 20.0):
        super().__init__(credentials, request_timeout_seconds)
        self.calendar_id = calendar_id

    async def get_busy_intervals(self, dates: list[date]) -> list[BusyInterval]:
        if not dates:
            return []

        start, end = query_window(dates)
        url = f"{CALENDAR_API_BASE}/calendars/{quote(self.calendar_id, safe='@')}/events"
        params: dict[str, Any] = {
            "timeMin": start.isoformat().replace("+00:00", "Z"),
            "timeMax": end.isoformat().replace("+00:00", "Z"),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": 250,
        }

        intervals: list[BusyInterval] = []
        for _ in range(MAX_PAGES):
            data = self.unwrap(await self._make_request("GET", url, params=params))
            for item in data.get("items", []):
                interval = parse_busy_event(item)
                if interval is not None:
                    intervals.append(interval)

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token
        else:
            logger.warning(f"Calendar {self.calendar_id} returned more than {MAX_PAGES} pages; truncating")

        logger.debug(f"Fetched {len(intervals)} busy intervals for {len(dates)} dates")
        return intervals
