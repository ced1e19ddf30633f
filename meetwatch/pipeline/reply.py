"""
Reply text for meeting requests.

The controller decides what to say (which slots, or that none are open);
transport concerns such as MIME, threading headers and the "Re:" prefix
belong to the ReplySink.
"""

from __future__ import annotations

from meetwatch.models import CandidateSlot

NO_FREE_TIME = (
    "Unfortunately there is no free time on the requested dates. "
    "Could you suggest a few other days that would work for you?"
)
NO_MATCHING_TIME = (
    "None of the proposed times are open on the calendar. "
    "Could you suggest a few alternatives?"
)


def format_slot(slot: CandidateSlot) -> str:
    """'Friday 25 July 2025, 14:00-14:30 (-07:00)'"""
    line = f"{slot.date:%A} {slot.date.day} {slot.date:%B %Y}, {slot.time_slot}"
    return f"{line} ({slot.timezone})" if slot.timezone else line


def compose_reply_body(
    slots: list[CandidateSlot],
    assistant_name: str,
    account_email: str | None = None,
    has_free_time: bool = True,
) -> str:
    """Build the plain text body offering the given slots."""
    owner = f" <{account_email}>" if account_email else ""
    lines = [f"This is {assistant_name}{owner}, the scheduling assistant, responding."]
    lines.append("")

    if slots:
        lines.append("Here are some of the available slots, let me know which of these work for you:")
        lines.append("")
        lines.extend(f"  - {format_slot(slot)}" for slot in slots)
    elif has_free_time:
        lines.append(NO_MATCHING_TIME)
    else:
        lines.append(NO_FREE_TIME)

    lines.append("")
    lines.append("Thanks!")
    return "\n".join(lines)
