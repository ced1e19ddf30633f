"""
Processed Set - in-memory idempotency ledger for the pipeline

A message id is claimed the moment it is selected for processing, before
any side-effecting call. Once claimed it is never handed out again for the
lifetime of the process, whatever happens to it afterwards.

Eviction:
    Unbounded by default. With `max_entries` set, the oldest *acknowledged*
    entries are evicted first; claims that were never acknowledged at the
    source are kept, because the source would still list them as unread and
    evicting them would allow a second reply.

Usage:
    from meetwatch.pipeline.processed_set import ProcessedSet

    processed = ProcessedSet()
    if processed.claim("msg-1"):
        ...
        processed.mark_acknowledged("msg-1")
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ClaimRecord:
    """Bookkeeping for one claimed message id."""

    claimed_at: float
    acknowledged: bool = False


class ProcessedSet:
    """Thread-safe set of claimed message ids.

    Args:
        max_entries: Optional soft cap; only acknowledged entries are evicted.
    """

    def __init__(self, max_entries: int | None = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, ClaimRecord] = OrderedDict()
        self._lock = threading.Lock()
        self._evicted = 0

    def claim(self, message_id: str) -> bool:
        """Record a message id as taken.

        Returns:
            True if this call claimed the id, False if it was already claimed.
        """
        with self._lock:
            if message_id in self._entries:
                return False
            self._entries[message_id] = ClaimRecord(claimed_at=time.monotonic())
            self._evict_locked()
            return True

    def mark_acknowledged(self, message_id: str) -> None:
        """Note that the source has recorded the message as processed."""
        with self._lock:
            record = self._entries.get(message_id)
            if record is not None:
                record.acknowledged = True

    def is_acknowledged(self, message_id: str) -> bool:
        with self._lock:
            record = self._entries.get(message_id)
            return bool(record and record.acknowledged)

    def _evict_locked(self) -> None:
        """Drop oldest acknowledged entries while over the cap. Must hold _lock."""
        if self.max_entries is None or len(self._entries) <= self.max_entries:
            return
        for message_id in list(self._entries):
            if len(self._entries) <= self.max_entries:
                break
            if self._entries[message_id].acknowledged:
                del self._entries[message_id]
                self._evicted += 1

    def __contains__(self, message_id: object) -> bool:
        with self._lock:
            return message_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> dict[str, Any]:
        with self._lock:
            acknowledged = sum(1 for r in self._entries.values() if r.acknowledged)
            return {
                "size": len(self._entries),
                "acknowledged": acknowledged,
                "unacknowledged": len(self._entries) - acknowledged,
                "evicted": self._evicted,
                "max_entries": self.max_entries,
            }
