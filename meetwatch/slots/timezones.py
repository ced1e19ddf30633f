"""
Timezone parsing for slot computation.

Accepts the fixed-offset forms the oracle and callers produce ("+08:00",
"-0700", "UTC+8", "UTC-07:00", "GMT+5:30", "Z", "UTC") as well as IANA zone
names ("America/Los_Angeles"). Fixed offsets never observe DST; named zones
are resolved per date, so each working day gets its own UTC offset.
"""

from __future__ import annotations

import re
from datetime import timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from meetwatch.errors import SlotComputationFailure

_OFFSET_RE = re.compile(
    r"^(?:UTC|GMT)?\s*(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)


def parse_timezone(value: str | tzinfo | None) -> tzinfo:
    """
    Resolve a timezone string to a tzinfo.

    Raises:
        SlotComputationFailure: if the value is neither an offset nor a known zone
    """
    if value is None:
        return timezone.utc
    if isinstance(value, tzinfo):
        return value

    text = str(value).strip()
    if text.upper() in ("", "Z", "UTC", "GMT"):
        return timezone.utc

    match = _OFFSET_RE.match(text)
    if match:
        hours = int(match.group("hours"))
        minutes = int(match.group("minutes") or 0)
        if hours > 14 or minutes >= 60:
            raise SlotComputationFailure(f"UTC offset out of range: {value!r}")
        offset = timedelta(hours=hours, minutes=minutes)
        if match.group("sign") == "-":
            offset = -offset
        return timezone(offset)

    try:
        return ZoneInfo(text)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise SlotComputationFailure(f"Unknown timezone: {value!r}") from e


def format_offset(tz: tzinfo) -> str:
    """Render a fixed-offset tzinfo as '+HH:MM'; named zones render by key."""
    key = getattr(tz, "key", None)
    if key:
        return key
    offset = tz.utcoffset(None) or timedelta(0)
    total = int(offset.total_seconds() // 60)
    sign = "-" if total < 0 else "+"
    total = abs(total)
    return f"{sign}{total // 60:02d}:{total % 60:02d}"


__all__ = ["parse_timezone", "format_offset"]
