"""
Polling Monitor - periodic driver for MeetingPipelineController.poll_once()

A single background task fires poll_once() every `interval_seconds`. Ticks
never overlap: the loop awaits each poll before sleeping, and a tick that
arrives while a poll is in flight (a manual tick() call) is skipped
and counted. Each poll runs under a per-tick deadline; when it expires the
poll is abandoned at its current await and the next tick runs as usual.
Messages claimed by the abandoned poll stay claimed.

Usage:
    from meetwatch.pipeline.monitor import PollingMonitor

    monitor = PollingMonitor(controller, interval_seconds=60)
    monitor.start()
    ...
    await monitor.stop()
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from meetwatch.config_models import PollingConfig
from meetwatch.logging_config import get_logger
from meetwatch.models import Outcome, PollReport
from meetwatch.pipeline.controller import MeetingPipelineController

logger = get_logger(__name__)


class PollingMonitor:
    """Timer-driven, non-reentrant poll loop."""

    def __init__(
        self,
        controller: MeetingPipelineController,
        interval_seconds: float = 60.0,
        tick_deadline_seconds: float = 120.0,
        shutdown_timeout_seconds: float = 30.0,
    ):
        """
        Args:
            controller: Pipeline controller to drive
            interval_seconds: Delay between the end of one poll and the next
            tick_deadline_seconds: Poll abandoned after this long
            shutdown_timeout_seconds: How long stop() waits for an in-flight poll
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.controller = controller
        self.interval_seconds = interval_seconds
        self.tick_deadline_seconds = tick_deadline_seconds
        self.shutdown_timeout_seconds = shutdown_timeout_seconds

        self._running = False
        self._task: asyncio.Task | None = None
        self._tick_lock = asyncio.Lock()
        self._wake = asyncio.Event()

        # Stats
        self._ticks = 0
        self._skipped_ticks = 0
        self._timed_out_ticks = 0
        self._failed_ticks = 0
        self._last_tick_at: datetime | None = None
        self._last_report: PollReport | None = None

    @classmethod
    def from_config(cls, controller: MeetingPipelineController, config: PollingConfig) -> "PollingMonitor":
        return cls(
            controller,
            interval_seconds=config.poll_interval_seconds,
            tick_deadline_seconds=config.tick_deadline_seconds,
            shutdown_timeout_seconds=config.shutdown_timeout_seconds,
        )

    @property
    def running(self) -> bool:
        return self._running

    def status(self) -> dict[str, Any]:
        """Get monitor status."""
        return {
            "running": self._running,
            "interval_seconds": self.interval_seconds,
            "ticks": self._ticks,
            "skipped_ticks": self._skipped_ticks,
            "timed_out_ticks": self._timed_out_ticks,
            "failed_ticks": self._failed_ticks,
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "last_report": self._last_report.to_dict() if self._last_report else None,
            "controller": self.controller.stats,
        }

    async def tick(self) -> PollReport | None:
        """
        Run one poll under the tick deadline.

        Returns:
            The poll report, or None if the tick was skipped or abandoned
        """
        if self._tick_lock.locked():
            self._skipped_ticks += 1
            logger.warning("Previous poll still in flight, skipping tick")
            return None

        async with self._tick_lock:
            self._ticks += 1
            self._last_tick_at = datetime.now(timezone.utc)
            try:
                report = await asyncio.wait_for(self.controller.poll_once(), timeout=self.tick_deadline_seconds)
            except asyncio.TimeoutError:
                self._timed_out_ticks += 1
                logger.error(f"Poll exceeded tick deadline of {self.tick_deadline_seconds}s, abandoned")
                return None
            except Exception as e:
                self._failed_ticks += 1
                logger.exception(f"Poll failed: {e}")
                return None

            self._last_report = report
            if report.claimed:
                logger.info(
                    f"Poll done: {report.claimed} new, {report.skipped_seen} seen, "
                    f"{report.count(Outcome.REPLIED)} replied"
                )
            return report

    async def run(self) -> None:
        """Background loop: poll, then sleep until the next tick or a wake-up."""
        self._running = True
        logger.info(f"Polling monitor started (every {self.interval_seconds}s)")

        while self._running:
            await self.tick()
            if not self._running:
                break
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()

        logger.info("Polling monitor stopped")

    def start(self) -> asyncio.Task:
        """Start the poll loop as a background task."""
        if self._task and not self._task.done():
            return self._task
        self._running = True
        self._task = asyncio.create_task(self.run())
        return self._task

    def tick_now(self) -> None:
        """Wake the loop so the next poll runs without waiting out the interval."""
        self._wake.set()

    async def stop(self) -> None:
        """
        Stop the loop. An in-flight poll gets shutdown_timeout_seconds to
        finish, then is cancelled at its current external call.
        """
        self._running = False
        self._wake.set()
        if self._task and not self._task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=self.shutdown_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning("In-flight poll did not finish before shutdown timeout, cancelling")
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
        self._task = None
