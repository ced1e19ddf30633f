"""Message pipeline: idempotency ledger, controller and polling monitor."""

from meetwatch.pipeline.controller import MeetingPipelineController
from meetwatch.pipeline.monitor import PollingMonitor
from meetwatch.pipeline.processed_set import ProcessedSet
from meetwatch.pipeline.reply import compose_reply_body

__all__ = [
    "MeetingPipelineController",
    "PollingMonitor",
    "ProcessedSet",
    "compose_reply_body",
]
