"""
Tool: Claude Intent Oracle
Purpose: Meeting intent classification and slot ranking with the Anthropic API

Usage:
    from meetwatch.oracle.claude import ClaudeIntentOracle

    oracle = ClaudeIntentOracle(model="claude-sonnet-4-20250514")
    context = await oracle.classify("Let's meet Friday at 9am", date.today(), "+08:00")
    if context is not None:
        ranked = await oracle.rank(text, date.today(), "+08:00", free_slots, context)

Dependencies:
    - anthropic (pip install anthropic)
"""

from __future__ import annotations

import json
import os
from dataclasses import replace
from datetime import date

import anthropic

from meetwatch.errors import PermanentExternalFailure, TransientExternalFailure
from meetwatch.logging_config import get_logger
from meetwatch.models import FreeSlot, MeetingRequestContext
from meetwatch.oracle.base import IntentOracle
from meetwatch.oracle.responses import parse_oracle_output

logger = get_logger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_TEXT_CHARS = 4000
PERMANENT_STATUSES = {400, 404, 413, 422}

SYSTEM_PROMPT = "You are a smart assistant that helps schedule meetings."

CLASSIFY_PROMPT = """Given the following message:
---
"{text}"
---
The calendar owner is in timezone {timezone}. Assume today's date is {today}.

1. Decide whether the message is asking to schedule, move, confirm or cancel a meeting.
   If it is not about a meeting at all, respond with [] and nothing else.
2. Understand the context (lunch, dinner, call, interview) and suggest times that fit it.
3. Extract any preferred meeting windows: dates, days of the week, time ranges.
4. Assume a default meeting length of {slot_length} minutes.
5. Use the timezone the request is coming from if it names one, otherwise {timezone}.
6. Respond ONLY with a valid JSON object, no markdown, no explanation, no code block.

Example JSON format:
{{
  "extracted_preferences": {{
    "date_range": ["2025-07-24"],
    "preferred_days": ["Thursday"],
    "preferred_time": "Not specified"
  }},
  "suggested_meeting_times": [
    {{"date": "2025-07-24", "time_slots": ["09:00-09:30", "09:30-10:00"], "timezone": "+00:00"}}
  ],
  "meeting_context": {{"intent": "propose|confirm|cancel|reschedule|vague", "meeting_type": "lunch"}},
  "notes": "No specific time mentioned, suggesting common business hours slots"
}}"""

RANK_PROMPT = """Given the following message:
---
"{text}"
---
Assume today's date is {today}. The calendar owner is in timezone {timezone}.

What was understood from the message so far:
{context}

These are the ONLY free slots on the owner's calendar:
{free_slots}

Pick up to {max_slots} of these free slots that best match what the sender asked for,
best first. Never suggest a time that is not in the free slot list. Keep each chosen
slot exactly as listed.

Respond ONLY with a valid JSON object, no markdown, no explanation, no code block:
{{
  "suggested_meeting_times": [
    {{"date": "2025-07-24", "time_slots": ["09:00-09:30"], "timezone": "{timezone}"}}
  ],
  "meeting_context": {{"intent": "propose", "meeting_type": ""}},
  "notes": "why these slots were chosen"
}}"""


class ClaudeIntentOracle(IntentOracle):
    """IntentOracle backed by a Claude model."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.2,
        api_key: str | None = None,
        api_key_env: str = "ANTHROPIC_API_KEY",
        slot_length_minutes: int = 30,
        max_ranked_slots: int = 5,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.slot_length_minutes = slot_length_minutes
        self.max_ranked_slots = max_ranked_slots
        self._api_key = api_key or os.environ.get(api_key_env)
        self._client = client

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def _complete(self, prompt: str) -> str:
        """Send one prompt and return the text of the reply."""
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except (anthropic.APIConnectionError, anthropic.RateLimitError) as e:
            raise TransientExternalFailure(f"Claude API unavailable: {e}", service="anthropic") from e
        except anthropic.APIStatusError as e:
            error_cls = PermanentExternalFailure if e.status_code in PERMANENT_STATUSES else TransientExternalFailure
            raise error_cls(f"Claude API error: {e}", service="anthropic", status=e.status_code) from e

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        logger.debug(f"Claude response ({len(text)} chars) from {self.model}")
        return text

    async def classify(self, text: str, today: date, timezone: str) -> MeetingRequestContext | None:
        prompt = CLASSIFY_PROMPT.format(
            text=(text or "")[:MAX_TEXT_CHARS],
            today=today.isoformat(),
            timezone=timezone,
            slot_length=self.slot_length_minutes,
        )
        return parse_oracle_output(await self._complete(prompt))

    async def rank(
        self,
        text: str,
        today: date,
        timezone: str,
        constraints: list[FreeSlot],
        context: MeetingRequestContext | None = None,
    ) -> MeetingRequestContext:
        free_slots = [
            {"date": slot.date.isoformat(), "time_slot": slot.label, "timezone": timezone}
            for slot in constraints
        ]
        prompt = RANK_PROMPT.format(
            text=(text or "")[:MAX_TEXT_CHARS],
            today=today.isoformat(),
            timezone=timezone,
            context=json.dumps(context.to_dict() if context else {}, indent=2),
            free_slots=json.dumps(free_slots, indent=2),
            max_slots=self.max_ranked_slots,
        )
        ranked = parse_oracle_output(await self._complete(prompt))
        if ranked is None:
            return MeetingRequestContext(timezone=timezone)
        if not ranked.timezone:
            ranked.timezone = timezone
        # Entries without their own timezone are in the requested one
        ranked.candidate_slots = [
            slot if slot.timezone else replace(slot, timezone=ranked.timezone)
            for slot in ranked.candidate_slots
        ]
        return ranked
