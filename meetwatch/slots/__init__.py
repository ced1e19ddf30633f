"""Interval slot engine: free-slot computation and candidate checks (pure, no I/O)."""

from meetwatch.slots.availability import (
    check_slot_availability,
    filter_candidates_by_free_slots,
    is_window_free,
    parse_time_slot,
)
from meetwatch.slots.engine import MODES, compute_free_slots, compute_free_slots_safe, working_window
from meetwatch.slots.timezones import format_offset, parse_timezone

__all__ = [
    "MODES",
    "check_slot_availability",
    "compute_free_slots",
    "compute_free_slots_safe",
    "filter_candidates_by_free_slots",
    "format_offset",
    "is_window_free",
    "parse_time_slot",
    "parse_timezone",
    "working_window",
]
