"""
Tool: Meetwatch Models
Purpose: Data structures shared by the slot engine, pipeline and providers

Usage:
    from meetwatch.models import BusyInterval, SlotSpec, FreeSlot, MeetingRequestContext

All instants are timezone-aware. Busy intervals are normalized to UTC on
construction; free slots carry the timezone of the working day they belong to.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Any


def _require_aware(value: datetime, name: str) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError(f"{name} must be timezone-aware, got naive {value.isoformat()}")
    return value


def parse_date(value: date | str) -> date:
    """Parse a calendar date from a date object or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


# =============================================================================
# Calendar data
# =============================================================================


@dataclass(frozen=True)
class BusyInterval:
    """
    A time range during which the calendar owner is unavailable.

    Stored in UTC. Naive datetimes are rejected: the busy source must say
    which instant it means.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        start = _require_aware(self.start, "start").astimezone(timezone.utc)
        end = _require_aware(self.end, "end").astimezone(timezone.utc)
        if not start < end:
            raise ValueError(f"Busy interval must have start < end: {start.isoformat()} >= {end.isoformat()}")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BusyInterval":
        return cls(
            start=datetime.fromisoformat(str(data["start"]).replace("Z", "+00:00")),
            end=datetime.fromisoformat(str(data["end"]).replace("Z", "+00:00")),
        )


@dataclass(frozen=True)
class SlotSpec:
    """
    Scheduling parameters for free-slot computation.

    `dates` may hold date objects or ISO strings; strings that fail to parse
    are skipped by the engine. `timezone` is a fixed offset string, an IANA
    zone name, or a tzinfo.
    """

    dates: tuple[date | str, ...]
    timezone: str | tzinfo = "+00:00"
    workday_start: int = 9
    workday_end: int = 18
    slot_length_minutes: int = 30
    buffer_minutes: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "dates", tuple(self.dates))
        if not 0 <= self.workday_start <= 24 or not 0 <= self.workday_end <= 24:
            raise ValueError("Workday hours must be within 0-24")
        if not self.workday_start < self.workday_end:
            raise ValueError(
                f"workday_start ({self.workday_start}) must be before workday_end ({self.workday_end})"
            )
        if self.slot_length_minutes <= 0:
            raise ValueError("slot_length_minutes must be positive")
        if self.buffer_minutes < 0:
            raise ValueError("buffer_minutes must not be negative")

    @property
    def slots_per_day(self) -> int:
        """Number of slots in an unobstructed working day."""
        return (self.workday_end - self.workday_start) * 60 // self.slot_length_minutes


@dataclass(frozen=True, order=True)
class FreeSlot:
    """
    A bookable window of exactly one slot length inside a working day.

    Ordering compares (start, end), which gives chronological order across
    timezones because both fields are aware.
    """

    start: datetime
    end: datetime

    @property
    def date(self) -> date:
        """Calendar date of the slot in its own timezone."""
        return self.start.date()

    @property
    def label(self) -> str:
        """Wall-clock label, e.g. '14:00-14:30'."""
        return f"{self.start:%H:%M}-{self.end:%H:%M}"

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


# =============================================================================
# Messages
# =============================================================================


@dataclass
class EmailAddress:
    """
    Email address with display name.
    """

    address: str
    name: str | None = None

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} <{self.address}>"
        return self.address

    @classmethod
    def from_string(cls, s: str) -> "EmailAddress":
        """Parse 'Name <email>' or plain 'email' format."""
        match = re.match(r"^(.*?)\s*<([^>]+)>$", s.strip())
        if match:
            name = match.group(1).strip().strip('"') or None
            return cls(address=match.group(2).strip(), name=name)
        return cls(address=s.strip())


@dataclass
class InboundMessage:
    """
    A fetched message, reduced to what the pipeline needs to reply.

    `message_id_header` is the RFC 822 Message-ID used for In-Reply-To,
    distinct from `id`, the source's opaque identity.
    """

    id: str
    thread_id: str | None = None
    subject: str = ""
    sender: EmailAddress | None = None
    message_id_header: str | None = None
    snippet: str = ""
    body_text: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    labels: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Plain text handed to the oracle."""
        return self.snippet or (self.body_text or "")


# =============================================================================
# Oracle boundary
# =============================================================================


class MeetingIntent(str, Enum):
    """What the sender wants to do about the meeting."""

    PROPOSE = "propose"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    VAGUE = "vague"

    @classmethod
    def parse(cls, value: Any) -> "MeetingIntent":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.VAGUE


@dataclass(frozen=True)
class CandidateSlot:
    """A proposed time on a date, e.g. ('2025-07-30', '14:00-14:30', '+08:00')."""

    date: date
    time_slot: str
    timezone: str

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "time_slot": self.time_slot, "timezone": self.timezone}


@dataclass
class MeetingRequestContext:
    """
    Normalized oracle output for a meeting-related message.

    The pipeline only reads candidate dates and the timezone; everything else
    is carried through to the ranking call and the reply.
    """

    preferred_dates: set[date] = field(default_factory=set)
    preferred_days: set[str] = field(default_factory=set)
    preferred_time: str | None = None
    candidate_slots: list[CandidateSlot] = field(default_factory=list)
    intent: MeetingIntent = MeetingIntent.VAGUE
    meeting_type: str = ""
    notes: str = ""
    timezone: str | None = None

    def candidate_dates(self) -> list[date]:
        """Sorted union of preferred dates and the dates of candidate slots."""
        dates = set(self.preferred_dates)
        dates.update(slot.date for slot in self.candidate_slots)
        return sorted(dates)

    def resolve_timezone(self, default: str) -> str:
        if self.timezone:
            return self.timezone
        for slot in self.candidate_slots:
            if slot.timezone:
                return slot.timezone
        return default

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the oracle's JSON shape."""
        return {
            "extracted_preferences": {
                "date_range": [d.isoformat() for d in sorted(self.preferred_dates)],
                "preferred_days": sorted(self.preferred_days),
                "preferred_time": self.preferred_time or "Not specified",
            },
            "suggested_meeting_times": [slot.to_dict() for slot in self.candidate_slots],
            "meeting_context": {
                "intent": self.intent.value,
                "meeting_type": self.meeting_type,
            },
            "notes": self.notes,
        }


# =============================================================================
# Pipeline bookkeeping
# =============================================================================


class MessageState(str, Enum):
    """
    Per-message pipeline state.

    DISCOVERED -> CLAIMED -> CLASSIFIED -> [SLOTS_COMPUTED -> REPLIED] -> ACKNOWLEDGED
    FAILED_ACKNOWLEDGED: marked processed although a downstream step failed.
    FAILED: claimed in-process but not acknowledged at the source.
    """

    DISCOVERED = "discovered"
    CLAIMED = "claimed"
    CLASSIFIED = "classified"
    SLOTS_COMPUTED = "slots_computed"
    REPLIED = "replied"
    ACKNOWLEDGED = "acknowledged"
    FAILED_ACKNOWLEDGED = "failed_acknowledged"
    FAILED = "failed"


class Outcome(str, Enum):
    """Why a message ended where it did."""

    REPLIED = "replied"
    NOT_MEETING = "not_meeting"
    CLASSIFICATION_FAILED = "classification_failed"
    REPLY_FAILED = "reply_failed"
    NO_RECIPIENT = "no_recipient"
    STEP_FAILED = "step_failed"
    FETCH_FAILED = "fetch_failed"
    ACK_FAILED = "ack_failed"


@dataclass
class MessageOutcome:
    """Record of one message's trip through the pipeline."""

    message_id: str
    state: MessageState = MessageState.DISCOVERED
    outcome: Outcome | None = None
    error: str | None = None
    candidate_dates: list[date] = field(default_factory=list)
    free_slot_count: int = 0
    replied_slots: list[CandidateSlot] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_id": self.message_id,
            "state": self.state.value,
            "outcome": self.outcome.value if self.outcome else None,
            "error": self.error,
            "candidate_dates": [d.isoformat() for d in self.candidate_dates],
            "free_slot_count": self.free_slot_count,
            "replied_slots": [s.to_dict() for s in self.replied_slots],
        }


@dataclass
class PollReport:
    """Summary of a single poll."""

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    listed: int = 0
    skipped_seen: int = 0
    skipped_reentrant: bool = False
    list_error: str | None = None
    outcomes: list[MessageOutcome] = field(default_factory=list)

    @property
    def claimed(self) -> int:
        return len(self.outcomes)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for o in self.outcomes if o.outcome == outcome)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.list_error is None and not self.skipped_reentrant,
            "started_at": self.started_at.isoformat(),
            "listed": self.listed,
            "claimed": self.claimed,
            "skipped_seen": self.skipped_seen,
            "skipped_reentrant": self.skipped_reentrant,
            "list_error": self.list_error,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
