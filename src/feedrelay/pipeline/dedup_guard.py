"""
Idempotency guard backed by the ``processed_posts`` table.

``should_process`` is checked right before dispatch and ``mark_processed`` is
called only after a confirmed successful dispatch. A crash between the two
means the item is posted again on redelivery (at-least-once), never lost.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

from feedrelay.database.db_connection import ConnectionManager
from feedrelay.datatypes.outcome_datatypes import ClassificationResult, DispatchResult
from feedrelay.datatypes.post_datatypes import CanonicalPost
from feedrelay.repositories.processed_posts_repo import ProcessedPostRecord, ProcessedPostsRepo
from feedrelay.util.logger import get_logger

logger = get_logger("dedup_guard")

SECONDS_PER_DAY = 86400


class DedupGuard:
    """Answers "has this post already been delivered?" across restarts."""

    def __init__(self, db: ConnectionManager, clock: Callable[[], float] = time.time) -> None:
        self._db = db
        self._clock = clock

    async def should_process(self, post_id: str) -> bool:
        """Return False if ``post_id`` was already delivered."""
        async with self._db.read() as conn:
            return not await ProcessedPostsRepo.exists(conn, post_id)

    async def mark_processed(
        self,
        post: CanonicalPost,
        dispatch_result: Optional[DispatchResult] = None,
        classification: Optional[ClassificationResult] = None,
    ) -> bool:
        """Record ``post`` as delivered.

        Returns:
            True if this call recorded the post, False if another delivery
            already had.
        """
        record = ProcessedPostRecord(
            post_id=post.post_id,
            source_type=str(post.source_type),
            message_id=dispatch_result.message_id if dispatch_result else None,
            channel_id=dispatch_result.channel_id if dispatch_result else None,
            requires_age_gate=bool(classification and classification.requires_age_gate),
            processed_at=int(self._clock()),
        )
        async with self._db.transaction() as conn:
            inserted = await ProcessedPostsRepo.insert_if_absent(conn, record)

        if not inserted:
            logger.info("[DEDUP] %s was already recorded by a concurrent delivery", post.post_id)
        return inserted

    async def purge_older_than(self, days: int) -> int:
        """Forget posts delivered more than ``days`` days ago."""
        cutoff = int(self._clock()) - days * SECONDS_PER_DAY
        async with self._db.transaction() as conn:
            removed = await ProcessedPostsRepo.delete_older_than(conn, cutoff)
        if removed:
            logger.info("[DEDUP] Purged %d processed posts older than %d days", removed, days)
        return removed

    async def summary(self) -> Dict[str, Any]:
        """Aggregate figures for the stats endpoint."""
        now = int(self._clock())
        async with self._db.read() as conn:
            total = await ProcessedPostsRepo.count(conn)
            last_day = await ProcessedPostsRepo.count_since(conn, now - SECONDS_PER_DAY)
            last_at = await ProcessedPostsRepo.last_processed_at(conn)
        return {
            "totalRecorded": total,
            "recordedLast24h": last_day,
            "lastRecordedAt": last_at,
        }
