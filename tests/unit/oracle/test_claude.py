"""Tests for meetwatch/oracle/claude.py

The Anthropic client is replaced with a MagicMock whose messages.create is
an AsyncMock, so no network calls are made.
"""

import json
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from meetwatch.errors import (
    PermanentClassificationFailure,
    PermanentExternalFailure,
    TransientExternalFailure,
)
from meetwatch.models import FreeSlot, MeetingRequestContext
from meetwatch.oracle.claude import ClaudeIntentOracle

PDT = timezone(timedelta(hours=-7))
API_URL = "https://api.anthropic.com/v1/messages"


def response_with(text: str):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def status_error(cls, status: int):
    request = httpx.Request("POST", API_URL)
    return cls(f"HTTP {status}", response=httpx.Response(status, request=request), body=None)


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.messages.create = AsyncMock()
    return client


@pytest.fixture
def oracle(mock_client):
    return ClaudeIntentOracle(model="test-model", api_key="sk-test", client=mock_client)


class TestClassify:
    @pytest.mark.asyncio
    async def test_structured_response(self, oracle, mock_client):
        mock_client.messages.create.return_value = response_with(
            json.dumps({
                "extracted_preferences": {"date_range": ["2025-07-25", "2025-07-28"]},
                "meeting_context": {"intent": "propose", "meeting_type": "call"},
            })
        )

        context = await oracle.classify("Let's meet Friday at 9am or Monday at 5pm", date(2025, 7, 24), "-07:00")

        assert context.candidate_dates() == [date(2025, 7, 25), date(2025, 7, 28)]
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["temperature"] == 0.2
        prompt = kwargs["messages"][0]["content"]
        assert "2025-07-24" in prompt
        assert "-07:00" in prompt
        assert "Let's meet Friday" in prompt

    @pytest.mark.asyncio
    async def test_legacy_response(self, oracle, mock_client):
        mock_client.messages.create.return_value = response_with('["2025-07-25"]')

        context = await oracle.classify("Friday?", date(2025, 7, 24), "+00:00")

        assert context.candidate_dates() == [date(2025, 7, 25)]

    @pytest.mark.asyncio
    async def test_empty_result_is_not_meeting(self, oracle, mock_client):
        mock_client.messages.create.return_value = response_with("[]")

        assert await oracle.classify("Invoice attached", date(2025, 7, 24), "+00:00") is None

    @pytest.mark.asyncio
    async def test_non_json_raises_classification_failure(self, oracle, mock_client):
        mock_client.messages.create.return_value = response_with("Happy to help! Friday works.")

        with pytest.raises(PermanentClassificationFailure):
            await oracle.classify("Friday?", date(2025, 7, 24), "+00:00")

    @pytest.mark.asyncio
    async def test_long_text_is_truncated(self, oracle, mock_client):
        mock_client.messages.create.return_value = response_with("[]")

        await oracle.classify("x" * 10000, date(2025, 7, 24), "+00:00")

        prompt = mock_client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "x" * 4001 not in prompt


class TestErrors:
    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, oracle, mock_client):
        mock_client.messages.create.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", API_URL)
        )

        with pytest.raises(TransientExternalFailure):
            await oracle.classify("Friday?", date(2025, 7, 24), "+00:00")

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self, oracle, mock_client):
        mock_client.messages.create.side_effect = status_error(anthropic.RateLimitError, 429)

        with pytest.raises(TransientExternalFailure):
            await oracle.classify("Friday?", date(2025, 7, 24), "+00:00")

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, oracle, mock_client):
        mock_client.messages.create.side_effect = status_error(anthropic.InternalServerError, 500)

        with pytest.raises(TransientExternalFailure) as exc_info:
            await oracle.classify("Friday?", date(2025, 7, 24), "+00:00")
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_bad_request_is_permanent(self, oracle, mock_client):
        mock_client.messages.create.side_effect = status_error(anthropic.BadRequestError, 400)

        with pytest.raises(PermanentExternalFailure):
            await oracle.classify("Friday?", date(2025, 7, 24), "+00:00")


class TestRank:
    @pytest.mark.asyncio
    async def test_rank_sends_free_slots_and_returns_candidates(self, oracle, mock_client):
        mock_client.messages.create.return_value = response_with(json.dumps({
            "suggested_meeting_times": [
                {"date": "2025-07-25", "time_slots": ["09:00-09:30"], "timezone": "-07:00"}
            ],
            "notes": "Friday morning as asked",
        }))
        free = [
            FreeSlot(start=datetime(2025, 7, 25, 9, 0, tzinfo=PDT), end=datetime(2025, 7, 25, 9, 30, tzinfo=PDT)),
            FreeSlot(start=datetime(2025, 7, 25, 9, 30, tzinfo=PDT), end=datetime(2025, 7, 25, 10, 0, tzinfo=PDT)),
        ]

        ranked = await oracle.rank("Friday morning?", date(2025, 7, 24), "-07:00", free, MeetingRequestContext())

        assert [s.time_slot for s in ranked.candidate_slots] == ["09:00-09:30"]
        prompt = mock_client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert '"time_slot": "09:30-10:00"' in prompt

    @pytest.mark.asyncio
    async def test_rank_empty_result(self, oracle, mock_client):
        mock_client.messages.create.return_value = response_with("[]")

        ranked = await oracle.rank("Friday?", date(2025, 7, 24), "-07:00", [])

        assert ranked.candidate_slots == []
        assert ranked.timezone == "-07:00"

    @pytest.mark.asyncio
    async def test_rank_entries_without_timezone_get_requested_one(self, oracle, mock_client):
        mock_client.messages.create.return_value = response_with(json.dumps({
            "suggested_meeting_times": [{"date": "2025-07-25", "time_slots": ["09:00-09:30"]}],
        }))

        ranked = await oracle.rank("Friday morning?", date(2025, 7, 24), "-07:00", [])

        assert [(s.time_slot, s.timezone) for s in ranked.candidate_slots] == [("09:00-09:30", "-07:00")]

    def test_client_created_lazily(self):
        oracle = ClaudeIntentOracle(api_key="sk-test")
        assert oracle._client is None
        assert isinstance(oracle.client, anthropic.AsyncAnthropic)
