"""
In-process processing counters.

Counters reset on restart; durable figures come from the dedup store.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from feedrelay.datatypes.outcome_datatypes import ItemResult, ProcessingOutcome


class ProcessingStats:
    """Counts item outcomes since startup."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self.started_at = clock()
        self.last_processed_at: Optional[float] = None
        self.total_processed = 0
        self.successful = 0
        self.filtered = 0
        self.failed = 0
        self.deduplicated = 0

    def record(self, result: ItemResult) -> None:
        with self._lock:
            self.total_processed += 1
            self.last_processed_at = self._clock()
            match result.outcome:
                case ProcessingOutcome.SUCCESS:
                    self.successful += 1
                    if result.deduplicated:
                        self.deduplicated += 1
                case ProcessingOutcome.FILTERED:
                    self.filtered += 1
                case ProcessingOutcome.FAILED:
                    self.failed += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            success_rate = (
                round(self.successful / self.total_processed * 100, 2) if self.total_processed else 0.0
            )
            last = (
                datetime.fromtimestamp(self.last_processed_at, timezone.utc).isoformat()
                if self.last_processed_at is not None
                else None
            )
            return {
                "uptimeSeconds": int(now - self.started_at),
                "lastProcessed": last,
                "totalProcessed": self.total_processed,
                "successfulPosts": self.successful,
                "filteredContent": self.filtered,
                "failedPosts": self.failed,
                "deduplicated": self.deduplicated,
                "successRate": success_rate,
            }
