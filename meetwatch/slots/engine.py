"""
Tool: Interval Slot Engine
Purpose: Compute conflict-free meeting slots from busy intervals

Pure functions, no I/O. Two modes produce the same slots for well-formed
input:

- enumerate: build every slot of the working day on the slot grid and keep
  the ones that clear all buffered busy intervals.
- gap: merge the buffered busy intervals for the day, walk the gaps between
  them and emit the grid slots that fit inside each gap. Cost grows with the
  number of busy intervals rather than the number of grid slots.

Overlap is half-open: a slot [s, e) conflicts with busy [b0, b1) expanded by
the buffer iff s < b1 + buffer and e > b0 - buffer. A slot exactly `buffer`
minutes away from a busy interval is therefore free.

Usage:
    from meetwatch.slots.engine import compute_free_slots

    spec = SlotSpec(dates=("2025-07-25",), timezone="-07:00", buffer_minutes=5)
    slots = compute_free_slots(busy, spec)                 # gap mode
    slots = compute_free_slots(busy, spec, mode="enumerate")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from meetwatch.errors import SlotComputationFailure
from meetwatch.models import BusyInterval, FreeSlot, SlotSpec, parse_date
from meetwatch.slots.timezones import parse_timezone

logger = logging.getLogger(__name__)

MODES = ("gap", "enumerate")


def working_window(day: date, tz: tzinfo, workday_start: int, workday_end: int) -> tuple[datetime, datetime]:
    """
    Return the working window of a date as UTC instants.

    Hour 24 is accepted for workday_end and means midnight at the end of the day.
    """
    # Aware + timedelta is wall-clock arithmetic, so named zones pick up
    # the offset in force at each bound
    midnight = datetime.combine(day, time(0), tzinfo=tz)
    start_local = midnight + timedelta(hours=workday_start)
    end_local = midnight + timedelta(hours=workday_end)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)


def _resolve_dates(dates: Iterable[date | str]) -> Iterator[date]:
    seen: set[date] = set()
    for raw in dates:
        try:
            day = parse_date(raw)
        except (TypeError, ValueError):
            logger.warning(f"Skipping malformed date {raw!r}")
            continue
        if day in seen:
            continue
        seen.add(day)
        yield day


def _buffered(busy: Iterable[BusyInterval], buffer: timedelta) -> list[tuple[datetime, datetime]]:
    return sorted((b.start - buffer, b.end + buffer) for b in busy)


def _slots_for_day_enumerate(
    day_start: datetime,
    day_end: datetime,
    length: timedelta,
    buffered: list[tuple[datetime, datetime]],
) -> list[tuple[datetime, datetime]]:
    slots = []
    slot_start = day_start
    while slot_start + length <= day_end:
        slot_end = slot_start + length
        conflict = any(slot_start < busy_end and slot_end > busy_start for busy_start, busy_end in buffered)
        if not conflict:
            slots.append((slot_start, slot_end))
        slot_start = slot_end
    return slots


def _merge(intervals: list[tuple[datetime, datetime]]) -> list[tuple[datetime, datetime]]:
    """Merge sorted intervals that overlap or touch."""
    merged: list[tuple[datetime, datetime]] = []
    for start, end in intervals:
        if merged and start <= merged[-1][1]:
            if end > merged[-1][1]:
                merged[-1] = (merged[-1][0], end)
        else:
            merged.append((start, end))
    return merged


def _slots_for_day_gaps(
    day_start: datetime,
    day_end: datetime,
    length: timedelta,
    buffered: list[tuple[datetime, datetime]],
) -> list[tuple[datetime, datetime]]:
    # Only intervals intersecting the window matter, clipped to it
    clipped = [
        (max(start, day_start), min(end, day_end))
        for start, end in buffered
        if start < day_end and end > day_start
    ]
    blocked = _merge(clipped)

    slots = []
    cursor = day_start
    for block_start, block_end in [*blocked, (day_end, day_end)]:
        gap_start, gap_end = cursor, block_start
        if gap_end > gap_start:
            # Snap up to the slot grid anchored at the start of the working day
            steps = -(-(gap_start - day_start) // length)
            slot_start = day_start + steps * length
            while slot_start + length <= gap_end:
                slots.append((slot_start, slot_start + length))
                slot_start += length
        cursor = max(cursor, block_end)
    return slots


def compute_free_slots(
    busy: Iterable[BusyInterval],
    spec: SlotSpec,
    mode: str = "gap",
) -> list[FreeSlot]:
    """
    Compute free slots for every date in the SlotSpec.

    Args:
        busy: Busy intervals in any order; overlaps are fine
        spec: Dates, timezone, working hours, slot length and buffer
        mode: 'gap' (walk gaps between busy intervals) or 'enumerate'

    Returns:
        FreeSlot list sorted by start, each expressed in the SlotSpec timezone

    Raises:
        SlotComputationFailure: if the timezone cannot be resolved
        ValueError: if mode is unknown

    Malformed dates are logged and skipped; the remaining dates still produce slots.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown slot mode: {mode!r}. Available: {list(MODES)}")

    tz = parse_timezone(spec.timezone)
    length = timedelta(minutes=spec.slot_length_minutes)
    buffered = _buffered(busy, timedelta(minutes=spec.buffer_minutes))
    day_slots = _slots_for_day_gaps if mode == "gap" else _slots_for_day_enumerate

    results: set[FreeSlot] = set()
    for day in _resolve_dates(spec.dates):
        try:
            day_start, day_end = working_window(day, tz, spec.workday_start, spec.workday_end)
        except (OverflowError, ValueError) as e:
            logger.warning(f"Skipping date {day.isoformat()}: {e}")
            continue

        for slot_start, slot_end in day_slots(day_start, day_end, length, buffered):
            results.add(FreeSlot(start=slot_start.astimezone(tz), end=slot_end.astimezone(tz)))

    return sorted(results)


def compute_free_slots_safe(
    busy: Iterable[BusyInterval],
    spec: SlotSpec,
    mode: str = "gap",
) -> list[FreeSlot]:
    """Like compute_free_slots, but wraps unexpected errors as SlotComputationFailure."""
    try:
        return compute_free_slots(busy, spec, mode=mode)
    except SlotComputationFailure:
        raise
    except (TypeError, ValueError, OverflowError) as e:
        raise SlotComputationFailure(f"Slot computation failed: {e}") from e


__all__ = ["MODES", "compute_free_slots", "compute_free_slots_safe", "working_window"]
