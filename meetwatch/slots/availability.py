"""
Tool: Candidate Slot Availability
Purpose: Check proposed meeting times against busy intervals

Given the candidate slots named in a MeetingRequestContext (a date, a
"HH:MM-HH:MM" label and a timezone), report which of them are free under
the same buffered, half-open overlap rule the slot engine uses.

Usage:
    from meetwatch.slots.availability import check_slot_availability

    result = check_slot_availability(context, busy, spec)
    if result["available"]:
        for slot in result["available_slots"]:
            print(slot["date"], slot["time_slot"], slot["timezone"])
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from meetwatch.errors import SlotComputationFailure
from meetwatch.models import BusyInterval, CandidateSlot, FreeSlot, MeetingRequestContext, SlotSpec
from meetwatch.slots.engine import working_window
from meetwatch.slots.timezones import parse_timezone

logger = logging.getLogger(__name__)

_LABEL_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*[-–]\s*(\d{1,2}):(\d{2})\s*$")


def parse_time_slot(day: date, label: str, tz_name: str) -> tuple[datetime, datetime]:
    """
    Turn ('2025-07-30', '14:00-14:30', '+08:00') into UTC instants.

    Raises:
        SlotComputationFailure: if the label or timezone is malformed
    """
    match = _LABEL_RE.match(label or "")
    if not match:
        raise SlotComputationFailure(f"Malformed time slot label: {label!r}")
    start_h, start_m, end_h, end_m = (int(g) for g in match.groups())
    if start_h > 23 or end_h > 24 or start_m > 59 or end_m > 59:
        raise SlotComputationFailure(f"Time out of range in slot label: {label!r}")

    tz = parse_timezone(tz_name)
    midnight = datetime.combine(day, time(0), tzinfo=tz)
    start = midnight + timedelta(hours=start_h, minutes=start_m)
    end = midnight + timedelta(hours=end_h, minutes=end_m)
    if end <= start:
        raise SlotComputationFailure(f"Slot label ends before it starts: {label!r}")
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def is_window_free(
    start: datetime,
    end: datetime,
    busy: Iterable[BusyInterval],
    buffer_minutes: int = 0,
) -> bool:
    """True if [start, end) clears every busy interval expanded by the buffer."""
    buffer = timedelta(minutes=buffer_minutes)
    return not any(start < b.end + buffer and end > b.start - buffer for b in busy)


def check_slot_availability(
    context: MeetingRequestContext,
    busy: Iterable[BusyInterval],
    spec: SlotSpec,
) -> dict[str, Any]:
    """
    Check each candidate slot of a request against busy intervals.

    Candidates outside the SlotSpec working hours are reported unavailable.
    Malformed candidates are skipped with a warning.

    Returns:
        {
            "available": bool,
            "available_slots": list[{"date", "time_slot", "timezone"}],
            "unavailable_slots": list[...],
        }
    """
    busy = list(busy)
    available: list[CandidateSlot] = []
    unavailable: list[CandidateSlot] = []

    for candidate in context.candidate_slots:
        tz_name = candidate.timezone or context.resolve_timezone(str(spec.timezone))
        try:
            start, end = parse_time_slot(candidate.date, candidate.time_slot, tz_name)
            day_start, day_end = working_window(
                candidate.date, parse_timezone(tz_name), spec.workday_start, spec.workday_end
            )
        except SlotComputationFailure as e:
            logger.warning(f"Skipping candidate {candidate.to_dict()}: {e}")
            continue

        in_hours = day_start <= start and end <= day_end
        if in_hours and is_window_free(start, end, busy, spec.buffer_minutes):
            available.append(candidate)
        else:
            unavailable.append(candidate)

    return {
        "available": bool(available),
        "available_slots": [c.to_dict() for c in available],
        "unavailable_slots": [c.to_dict() for c in unavailable],
    }


def filter_candidates_by_free_slots(
    candidates: Iterable[CandidateSlot],
    free_slots: Iterable[FreeSlot],
    default_timezone: str | None = None,
) -> list[CandidateSlot]:
    """
    Keep only candidates that lie entirely inside the union of free slots.

    Used to hold the oracle's ranked answer to the free-slot constraint.
    Order of the candidates is preserved. A candidate without a timezone is
    read in `default_timezone`, and is kept with that timezone filled in.
    """
    windows = sorted((s.start.astimezone(timezone.utc), s.end.astimezone(timezone.utc)) for s in free_slots)
    merged: list[tuple[datetime, datetime]] = []
    for start, end in windows:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(end, merged[-1][1]))
        else:
            merged.append((start, end))

    kept = []
    for candidate in candidates:
        if not candidate.timezone and default_timezone:
            candidate = replace(candidate, timezone=default_timezone)
        try:
            start, end = parse_time_slot(candidate.date, candidate.time_slot, candidate.timezone)
        except SlotComputationFailure as e:
            logger.warning(f"Dropping unparseable ranked slot {candidate.to_dict()}: {e}")
            continue
        if any(w_start <= start and end <= w_end for w_start, w_end in merged):
            kept.append(candidate)
        else:
            logger.info(f"Dropping ranked slot outside free windows: {candidate.to_dict()}")
    return kept


__all__ = [
    "check_slot_availability",
    "filter_candidates_by_free_slots",
    "is_window_free",
    "parse_time_slot",
]
