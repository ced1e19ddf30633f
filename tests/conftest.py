"""Shared test fixtures for Meetwatch tests.

This module provides common fixtures used across all test modules:
- Busy interval and slot spec builders
- Inbound message factory
- AsyncMock collaborators (message source, busy source, oracle, reply sink)

Usage:
    def test_something(make_message, collaborators):
        source, busy_source, oracle, sink = collaborators
        ...
"""

from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from meetwatch.models import (
    BusyInterval,
    CandidateSlot,
    EmailAddress,
    InboundMessage,
    MeetingIntent,
    MeetingRequestContext,
)
from meetwatch.oracle.base import IntentOracle
from meetwatch.providers.base import BusySource, MessageSource, ReplySink


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent

# Offset used by the worked examples: 2025-07-25 at -07:00
PDT = timezone(timedelta(hours=-7))


# ─────────────────────────────────────────────────────────────────────────────
# Calendar Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def local_busy():
    """Build a BusyInterval from local wall-clock times.

    Usage:
        local_busy("2025-07-25", "14:00", "14:30", PDT)
    """

    def _make(day: str, start: str, end: str, tz=PDT) -> BusyInterval:
        d = date.fromisoformat(day)
        sh, sm = (int(x) for x in start.split(":"))
        eh, em = (int(x) for x in end.split(":"))
        return BusyInterval(
            start=datetime(d.year, d.month, d.day, sh, sm, tzinfo=tz),
            end=datetime(d.year, d.month, d.day, eh, em, tzinfo=tz),
        )

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Message Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def make_message():
    """Factory for InboundMessage objects."""

    def _make(
        message_id: str = "msg-1",
        snippet: str = "Let's meet Friday at 9am or Monday at 5pm",
        sender: str | None = "Sam Lee <sam@example.com>",
        subject: str = "Catch up",
    ) -> InboundMessage:
        return InboundMessage(
            id=message_id,
            thread_id=f"thread-{message_id}",
            subject=subject,
            sender=EmailAddress.from_string(sender) if sender else None,
            message_id_header=f"<{message_id}@mail.example.com>",
            snippet=snippet,
        )

    return _make


@pytest.fixture
def meeting_context() -> MeetingRequestContext:
    """Oracle classification naming two dates (a Friday and a Monday)."""
    return MeetingRequestContext(
        preferred_dates={date(2025, 7, 25), date(2025, 7, 28)},
        preferred_days={"Friday", "Monday"},
        intent=MeetingIntent.PROPOSE,
        timezone="-07:00",
    )


@pytest.fixture
def ranked_context() -> MeetingRequestContext:
    """Oracle ranking that picks one slot on each date."""
    return MeetingRequestContext(
        candidate_slots=[
            CandidateSlot(date=date(2025, 7, 25), time_slot="09:00-09:30", timezone="-07:00"),
            CandidateSlot(date=date(2025, 7, 28), time_slot="17:00-17:30", timezone="-07:00"),
        ],
        intent=MeetingIntent.PROPOSE,
        timezone="-07:00",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Collaborator Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_source(make_message):
    """MessageSource whose get() returns a message for any id."""
    source = AsyncMock(spec=MessageSource)
    source.list_unread.return_value = ["msg-1"]
    source.get.side_effect = lambda message_id: make_message(message_id)
    source.mark_processed.return_value = None
    return source


@pytest.fixture
def mock_busy_source():
    busy_source = AsyncMock(spec=BusySource)
    busy_source.get_busy_intervals.return_value = []
    return busy_source


@pytest.fixture
def mock_oracle(meeting_context, ranked_context):
    oracle = AsyncMock(spec=IntentOracle)
    oracle.classify.return_value = meeting_context
    oracle.rank.return_value = ranked_context
    return oracle


@pytest.fixture
def mock_sink():
    sink = AsyncMock(spec=ReplySink)
    sink.send.return_value = True
    return sink


@pytest.fixture
def collaborators(mock_source, mock_busy_source, mock_oracle, mock_sink):
    """(source, busy_source, oracle, sink) tuple of AsyncMock collaborators."""
    return mock_source, mock_busy_source, mock_oracle, mock_sink


@pytest.fixture
def fixed_now():
    """Clock pinned to 2025-07-24 10:00 UTC (a Thursday)."""
    return lambda: datetime(2025, 7, 24, 10, 0, tzinfo=timezone.utc)
