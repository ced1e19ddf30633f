"""
Tool: Meeting Pipeline Controller
Purpose: Discover unread messages once, classify, compute free slots, reply, acknowledge

Per message:

    DISCOVERED -> CLAIMED -> CLASSIFIED -> [SLOTS_COMPUTED -> REPLIED] -> ACKNOWLEDGED

Every id is claimed in the ProcessedSet before any side-effecting call, so
within one process a message is never replied to twice. Once the message
has been fetched it is always marked processed at the source, even when a
later step fails:

    oracle output unparseable   -> treated as not meeting-related, ACKNOWLEDGED
    reply transmission fails    -> logged, ACKNOWLEDGED (outcome reply_failed)
    busy/oracle/slot step fails -> FAILED_ACKNOWLEDGED, no reply
    fetch fails                 -> FAILED (claimed, still unread at the source)

Known window: a stop or crash after the reply is transmitted but before
mark_processed leaves the message unread at the source; a restarted
process will reply to it again.

Usage:
    from meetwatch.pipeline.controller import MeetingPipelineController

    controller = MeetingPipelineController(source, busy_source, oracle, reply_sink)
    report = await controller.poll_once()
    print(report.to_dict())
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timedelta, timezone
from typing import Any, TypeVar

from meetwatch.config_models import MonitorConfig, ReplyConfig, SlotsConfig
from meetwatch.errors import (
    ExternalCallFailure,
    MeetwatchError,
    PermanentClassificationFailure,
    SlotComputationFailure,
    TransientExternalFailure,
)
from meetwatch.logging_config import bound_message, get_logger
from meetwatch.models import (
    InboundMessage,
    MessageOutcome,
    MessageState,
    Outcome,
    PollReport,
)
from meetwatch.oracle.base import IntentOracle
from meetwatch.pipeline.processed_set import ProcessedSet
from meetwatch.pipeline.reply import compose_reply_body
from meetwatch.providers.base import BusySource, MessageSource, ReplySink
from meetwatch.slots import MODES, compute_free_slots_safe, filter_candidates_by_free_slots, parse_timezone

logger = get_logger(__name__)

T = TypeVar("T")

# Outcomes that still count as a clean finish once the source acknowledges
CLEAN_OUTCOMES = {
    Outcome.REPLIED,
    Outcome.NOT_MEETING,
    Outcome.CLASSIFICATION_FAILED,
    Outcome.REPLY_FAILED,
    Outcome.NO_RECIPIENT,
}


class MeetingPipelineController:
    """
    Stateful orchestrator for the meeting reply pipeline.

    Owns its ProcessedSet. Not reentrant: a poll_once() call made while
    another is in flight returns immediately with skipped_reentrant set.
    """

    def __init__(
        self,
        source: MessageSource,
        busy_source: BusySource,
        oracle: IntentOracle,
        reply_sink: ReplySink,
        slots_config: SlotsConfig | None = None,
        reply_config: ReplyConfig | None = None,
        max_results: int = 10,
        call_timeout_seconds: float = 30.0,
        max_concurrency: int = 1,
        fallback_days: int = 2,
        max_processed_entries: int | None = None,
        account_email: str | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.source = source
        self.busy_source = busy_source
        self.oracle = oracle
        self.reply_sink = reply_sink
        self.slots_config = slots_config or SlotsConfig()
        self.reply_config = reply_config or ReplyConfig()
        self.max_results = max_results
        self.call_timeout_seconds = call_timeout_seconds
        self.max_concurrency = max(1, max_concurrency)
        self.fallback_days = fallback_days
        self.account_email = account_email
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._processed = ProcessedSet(max_entries=max_processed_entries)
        self._in_flight = False

        if self.slots_config.mode not in MODES:
            raise ValueError(f"Unknown slot mode: {self.slots_config.mode!r}")

        # Stats
        self._polls = 0
        self._replies = 0
        self._errors = 0
        self._last_report: PollReport | None = None

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        source: MessageSource,
        busy_source: BusySource,
        oracle: IntentOracle,
        reply_sink: ReplySink,
        account_email: str | None = None,
    ) -> "MeetingPipelineController":
        return cls(
            source,
            busy_source,
            oracle,
            reply_sink,
            slots_config=config.slots,
            reply_config=config.reply,
            max_results=config.monitor.max_results,
            call_timeout_seconds=config.monitor.call_timeout_seconds,
            max_concurrency=config.monitor.max_concurrency,
            fallback_days=config.monitor.fallback_days,
            max_processed_entries=config.processed_set.max_entries,
            account_email=account_email,
        )

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "polls": self._polls,
            "replies": self._replies,
            "errors": self._errors,
            "in_flight": self._in_flight,
            "processed": self._processed.stats,
            "last_poll": self._last_report.started_at.isoformat() if self._last_report else None,
        }

    # =========================================================================
    # Poll
    # =========================================================================

    async def poll_once(self) -> PollReport:
        """
        Run one discovery pass over the unread messages.

        Never raises for collaborator failures; they are recorded in the
        returned PollReport.
        """
        report = PollReport(started_at=self._now())
        if self._in_flight:
            logger.warning("poll_once called while a poll is in flight, skipping")
            report.skipped_reentrant = True
            return report

        self._in_flight = True
        try:
            await self._poll(report)
        finally:
            self._in_flight = False
            self._polls += 1
            self._last_report = report
        return report

    async def _poll(self, report: PollReport) -> None:
        try:
            message_ids = await self._call(self.source.list_unread(self.max_results), "list_unread")
        except Exception as e:
            if isinstance(e, ExternalCallFailure):
                self._log_external_failure("list_unread", None, e)
            else:
                logger.exception(f"Unexpected error listing unread messages: {e}")
            report.list_error = str(e)
            self._errors += 1
            return

        report.listed = len(message_ids)

        # Claim pre-pass: single-threaded, before any fan-out
        for message_id in message_ids:
            if self._processed.claim(message_id):
                report.outcomes.append(MessageOutcome(message_id=message_id, state=MessageState.CLAIMED))
            else:
                report.skipped_seen += 1

        if not report.outcomes:
            logger.debug(f"No new messages ({report.listed} unread, all seen)")
            return

        logger.info(f"Processing {len(report.outcomes)} new message(s)")

        if self.max_concurrency == 1:
            for outcome in report.outcomes:
                await self._process(outcome)
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def bounded(outcome: MessageOutcome) -> None:
                async with semaphore:
                    await self._process(outcome)

            await asyncio.gather(*(bounded(o) for o in report.outcomes))

    # =========================================================================
    # Per-message pipeline
    # =========================================================================

    async def _process(self, outcome: MessageOutcome) -> None:
        with bound_message(outcome.message_id):
            await self._process_claimed(outcome)

    async def _process_claimed(self, outcome: MessageOutcome) -> None:
        message_id = outcome.message_id
        try:
            message = await self._call(self.source.get(message_id), "get")
        except Exception as e:
            if isinstance(e, ExternalCallFailure):
                self._log_external_failure("get", message_id, e)
            else:
                logger.exception(f"Message {message_id}: unexpected error fetching message: {e}")
            outcome.state = MessageState.FAILED
            outcome.outcome = Outcome.FETCH_FAILED
            outcome.error = str(e)
            self._errors += 1
            return

        try:
            await self._run_steps(message, outcome)
        except ExternalCallFailure as e:
            self._log_external_failure("pipeline step", message_id, e)
            outcome.outcome = Outcome.STEP_FAILED
            outcome.error = str(e)
        except MeetwatchError as e:
            logger.error(f"Message {message_id}: {type(e).__name__}: {e}")
            outcome.outcome = Outcome.STEP_FAILED
            outcome.error = str(e)
        except Exception as e:
            # One message's failure must not abort the rest of the poll
            logger.exception(f"Message {message_id}: unexpected error: {e}")
            outcome.outcome = Outcome.STEP_FAILED
            outcome.error = str(e)

        await self._acknowledge(outcome)

    async def _run_steps(self, message: InboundMessage, outcome: MessageOutcome) -> None:
        default_tz = self.slots_config.timezone
        today = self._today(default_tz)
        text = message.text

        try:
            context = await self._call(self.oracle.classify(text, today, default_tz), "classify")
        except PermanentClassificationFailure as e:
            logger.warning(f"Message {message.id}: unparseable oracle output, treating as not meeting-related: {e}")
            outcome.state = MessageState.CLASSIFIED
            outcome.outcome = Outcome.CLASSIFICATION_FAILED
            outcome.error = str(e)
            return

        outcome.state = MessageState.CLASSIFIED
        if context is None:
            logger.info(f"Message {message.id}: not meeting-related")
            outcome.outcome = Outcome.NOT_MEETING
            return

        tz_name = self._resolve_timezone(context.resolve_timezone(default_tz), default_tz)
        dates = context.candidate_dates() or self._fallback_dates(today)
        outcome.candidate_dates = dates
        logger.info(f"Message {message.id}: meeting request for {[d.isoformat() for d in dates]} ({tz_name})")

        busy = await self._call(self.busy_source.get_busy_intervals(dates), "get_busy_intervals")
        spec = self.slots_config.to_slot_spec(dates, timezone=tz_name)
        free_slots = compute_free_slots_safe(busy, spec, mode=self.slots_config.mode)
        outcome.state = MessageState.SLOTS_COMPUTED
        outcome.free_slot_count = len(free_slots)

        recipient = message.sender.address if message.sender else None
        if not recipient:
            logger.warning(f"Message {message.id}: no sender address to reply to")
            outcome.outcome = Outcome.NO_RECIPIENT
            return

        chosen = []
        if free_slots:
            ranked = await self._call(
                self.oracle.rank(text, today, tz_name, free_slots, context), "rank"
            )
            chosen = filter_candidates_by_free_slots(
                ranked.candidate_slots, free_slots, default_timezone=tz_name
            )
            chosen = chosen[: self.reply_config.max_candidates]

        body = compose_reply_body(
            chosen,
            assistant_name=self.reply_config.assistant_name,
            account_email=self.account_email,
            has_free_time=bool(free_slots),
        )

        try:
            sent = await self._call(
                self.reply_sink.send(
                    recipient,
                    message.subject or self.reply_config.subject,
                    body,
                    thread_id=message.thread_id,
                    in_reply_to_message_id=message.message_id_header,
                ),
                "send",
            )
        except Exception as e:
            # Any sink failure is a failed transmission; the message is still acknowledged
            logger.error(f"Message {message.id}: reply to {recipient} failed: {e}")
            outcome.outcome = Outcome.REPLY_FAILED
            outcome.error = str(e)
            return

        if not sent:
            logger.error(f"Message {message.id}: reply sink rejected reply to {recipient}")
            outcome.outcome = Outcome.REPLY_FAILED
            return

        outcome.state = MessageState.REPLIED
        outcome.outcome = Outcome.REPLIED
        outcome.replied_slots = list(chosen)
        self._replies += 1
        logger.info(f"Message {message.id}: replied to {recipient} with {len(chosen)} slot(s)")

    async def _acknowledge(self, outcome: MessageOutcome) -> None:
        """Mark the message processed at the source, exactly once per claim."""
        try:
            await self._call(self.source.mark_processed(outcome.message_id), "mark_processed")
        except Exception as e:
            if isinstance(e, ExternalCallFailure):
                self._log_external_failure("mark_processed", outcome.message_id, e)
            else:
                logger.exception(f"Message {outcome.message_id}: unexpected error acknowledging: {e}")
            outcome.state = MessageState.FAILED
            outcome.outcome = Outcome.ACK_FAILED
            outcome.error = str(e)
            self._errors += 1
            return

        self._processed.mark_acknowledged(outcome.message_id)
        if outcome.outcome in CLEAN_OUTCOMES:
            outcome.state = MessageState.ACKNOWLEDGED
        else:
            outcome.state = MessageState.FAILED_ACKNOWLEDGED
            self._errors += 1

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _call(self, awaitable: Awaitable[T], what: str) -> T:
        """Await an external call under the per-call timeout."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.call_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise TransientExternalFailure(f"{what} timed out after {self.call_timeout_seconds}s") from e

    def _today(self, tz_name: str) -> date:
        return self._now().astimezone(parse_timezone(tz_name)).date()

    def _fallback_dates(self, today: date) -> list[date]:
        return [today + timedelta(days=i) for i in range(self.fallback_days)]

    @staticmethod
    def _resolve_timezone(tz_name: str, default_tz: str) -> str:
        try:
            parse_timezone(tz_name)
            return tz_name
        except SlotComputationFailure as e:
            logger.warning(f"{e}; falling back to {default_tz}")
            return default_tz

    @staticmethod
    def _log_external_failure(step: str, message_id: str | None, error: ExternalCallFailure) -> None:
        where = f"message {message_id}" if message_id else "poll"
        if error.retryable:
            logger.warning(f"Transient failure in {step} for {where}: {error}")
        else:
            logger.error(f"Permanent failure in {step} for {where}: {error}")
