"""
Oracle Response Shapes

The intent oracle answers in one of two JSON shapes:

    Legacy date list   ["2025-07-25", "2025-07-28"]
                       or {"meeting": "yes", "time": [...], "time_zone": "+08:00"}
    Structured context {"extracted_preferences": {...},
                        "suggested_meeting_times": [...],
                        "meeting_context": {...}, "notes": "..."}

Both are resolved here, once, into a tagged variant and then normalized to
MeetingRequestContext. An empty result (or "meeting": "no") means the
message is not meeting-related. Anything that is not valid JSON raises
PermanentClassificationFailure; nothing is guessed.

Usage:
    from meetwatch.oracle.responses import parse_oracle_output

    context = parse_oracle_output(raw_text)   # MeetingRequestContext | None
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Union

from meetwatch.errors import PermanentClassificationFailure
from meetwatch.models import CandidateSlot, MeetingIntent, MeetingRequestContext, parse_date

logger = logging.getLogger(__name__)

STRUCTURED_KEYS = ("extracted_preferences", "suggested_meeting_times", "meeting_context")
NOT_SPECIFIED = {"", "not specified", "none", "n/a"}


@dataclass
class LegacyDateList:
    """Bare list of inferred dates, optionally with a timezone."""

    dates: list[Any] = field(default_factory=list)
    timezone: str | None = None


@dataclass
class StructuredContext:
    """The structured object, still in its raw JSON form."""

    payload: dict[str, Any] = field(default_factory=dict)


OracleResponse = Union[LegacyDateList, StructuredContext]


def extract_json(raw_output: str) -> Any:
    """
    Parse model output as JSON, tolerating a surrounding markdown code block.

    Raises:
        PermanentClassificationFailure: if the text is not valid JSON
    """
    text = (raw_output or "").strip()

    if text.startswith("```"):
        lines = [line for line in text.split("\n") if not line.strip().startswith("```")]
        text = "\n".join(lines).strip()

    if not text:
        raise PermanentClassificationFailure("Oracle returned empty output", raw_output=raw_output)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise PermanentClassificationFailure(f"Oracle output is not valid JSON: {e}", raw_output=raw_output) from e


def interpret(payload: Any) -> OracleResponse | None:
    """
    Resolve a decoded payload into a response variant.

    Returns:
        None when the payload says the message is not meeting-related

    Raises:
        PermanentClassificationFailure: if the payload matches neither shape
    """
    if payload is None:
        return None

    if isinstance(payload, list):
        if not payload:
            return None
        return LegacyDateList(dates=list(payload))

    if not isinstance(payload, dict):
        raise PermanentClassificationFailure(f"Unexpected oracle payload type: {type(payload).__name__}")

    if not payload:
        return None

    if "meeting" in payload:
        if str(payload.get("meeting", "")).strip().lower() != "yes":
            return None
        times = payload.get("time") or []
        if not isinstance(times, list):
            times = [times]
        return LegacyDateList(dates=times, timezone=payload.get("time_zone") or payload.get("timezone"))

    if any(key in payload for key in STRUCTURED_KEYS):
        return StructuredContext(payload=payload)

    raise PermanentClassificationFailure(f"Oracle payload has no recognised keys: {sorted(payload)}")


def _coerce_date(value: Any) -> date | None:
    """Accept '2025-07-25' or a datetime string starting with it."""
    try:
        return parse_date(str(value).strip()[:10])
    except ValueError:
        logger.warning(f"Ignoring unparseable date from oracle: {value!r}")
        return None


def _candidate_slots(entries: Any, default_tz: str | None) -> list[CandidateSlot]:
    slots: list[CandidateSlot] = []
    if not isinstance(entries, list):
        return slots
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        day = _coerce_date(entry.get("date"))
        if day is None:
            continue
        tz = entry.get("timezone") or default_tz or ""
        labels = entry.get("time_slots")
        if labels is None:
            labels = [entry.get("time_slot")] if entry.get("time_slot") else []
        elif isinstance(labels, str):
            labels = [labels]
        elif not isinstance(labels, list):
            logger.warning(f"Ignoring time_slots of type {type(labels).__name__} for {day.isoformat()}")
            continue
        for label in labels:
            if isinstance(label, str) and label.strip():
                slots.append(CandidateSlot(date=day, time_slot=label.strip(), timezone=tz))
    return slots


def normalize(response: OracleResponse | None) -> MeetingRequestContext | None:
    """Turn either response variant into a MeetingRequestContext."""
    if response is None:
        return None

    if isinstance(response, LegacyDateList):
        dates = {d for d in (_coerce_date(v) for v in response.dates) if d is not None}
        return MeetingRequestContext(
            preferred_dates=dates,
            intent=MeetingIntent.PROPOSE,
            timezone=response.timezone,
        )

    payload = response.payload
    prefs = payload.get("extracted_preferences") or {}
    meeting = payload.get("meeting_context") or {}

    date_range = prefs.get("date_range") or []
    if not isinstance(date_range, list):
        date_range = [date_range]
    days = prefs.get("preferred_days") or []
    if not isinstance(days, list):
        days = [days]
    preferred_time = prefs.get("preferred_time")
    if isinstance(preferred_time, str) and preferred_time.strip().lower() in NOT_SPECIFIED:
        preferred_time = None

    timezone = payload.get("timezone") or meeting.get("timezone")
    slots = _candidate_slots(payload.get("suggested_meeting_times"), timezone)

    return MeetingRequestContext(
        preferred_dates={d for d in (_coerce_date(v) for v in date_range) if d is not None},
        preferred_days={str(d) for d in days if d},
        preferred_time=preferred_time,
        candidate_slots=slots,
        intent=MeetingIntent.parse(meeting.get("intent")),
        meeting_type=str(meeting.get("meeting_type") or ""),
        notes=str(payload.get("notes") or ""),
        timezone=timezone,
    )


def parse_oracle_output(raw_output: str) -> MeetingRequestContext | None:
    """Decode, classify and normalize raw model output in one step."""
    try:
        return normalize(interpret(extract_json(raw_output)))
    except PermanentClassificationFailure as e:
        if not e.raw_output:
            e.raw_output = raw_output
        raise
