"""
Per-item state machine and batch aggregation.

Each item goes Received -> Normalized -> Classified, then ends Filtered,
DedupSkipped or DispatchAttempted, and finally Success or Failed. Items of a
batch run one after another; a fault in one item is recorded as that item's
outcome and never stops the rest of the batch.

Each item runs shielded from cancellation: if the HTTP client disconnects,
the item in flight still completes and records its outcome, so a post is
never dispatched without being marked as processed.

The dedup check, dispatch and record of a post_id run under a per-post claim,
so overlapping deliveries of the same post dispatch it at most once: the
later delivery waits for the earlier one and then sees it as processed.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, Optional

from feedrelay.datatypes.feed_datatypes import FeedItem, InboundEnvelope, InboundItem, ManualItem
from feedrelay.datatypes.outcome_datatypes import (
    BatchResult,
    ClassificationResult,
    DispatchResult,
    ItemResult,
    ProcessingOutcome,
)
from feedrelay.datatypes.post_datatypes import CanonicalPost, SourceType
from feedrelay.dispatch.dispatcher import Dispatcher
from feedrelay.errors import DispatchError
from feedrelay.ingestion.item_normalizer import ItemNormalizer
from feedrelay.moderation.content_classifier import ContentClassifier
from feedrelay.pipeline.dedup_guard import DedupGuard
from feedrelay.pipeline.processing_stats import ProcessingStats
from feedrelay.security.rate_limiter import RateLimiter
from feedrelay.util.logger import get_logger

logger = get_logger("feed_processor")

NO_RESTRICTED_DESTINATION = "Age-restricted content has no restricted destination"
FEED_THROTTLED = "Rate limit exceeded for feed source"


class FeedProcessor:
    """Runs inbound items through classification, dedup and dispatch.

    Args:
        normalizer: Converts inbound items to canonical posts.
        classifier: Scores posts; failures fail open.
        dedup: Durable idempotency guard.
        dispatcher: Destination for accepted posts.
        stats: Outcome counters.
        dispatch_timeout: Seconds a single dispatch may take.
        feed_throttle: Optional limiter on new posts per feed; webhook items
            over the limit are filtered. Manual submissions are not throttled.
    """

    def __init__(
        self,
        normalizer: ItemNormalizer,
        classifier: ContentClassifier,
        dedup: DedupGuard,
        dispatcher: Dispatcher,
        stats: Optional[ProcessingStats] = None,
        dispatch_timeout: float = 10.0,
        feed_throttle: Optional[RateLimiter] = None,
    ) -> None:
        self.normalizer = normalizer
        self.classifier = classifier
        self.dedup = dedup
        self.dispatcher = dispatcher
        self.stats = stats or ProcessingStats()
        self.dispatch_timeout = dispatch_timeout
        self.feed_throttle = feed_throttle
        self._claims: Dict[str, asyncio.Lock] = {}
        self._claim_holders: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def process_envelope(self, envelope: InboundEnvelope) -> BatchResult:
        """Process every item of a validated webhook envelope."""
        items = [FeedItem(raw=raw, feed_id=envelope.source_feed_id) for raw in envelope.items]
        logger.info(
            "[FEED PROCESSOR] Processing %d items from feed %s",
            len(items), envelope.source_feed_title or envelope.source_feed_id or "unknown",
        )
        return await self.process_batch(items)

    async def process_batch(self, items: Iterable[InboundItem]) -> BatchResult:
        batch = BatchResult()
        for item in items:
            batch.add(await asyncio.shield(self.process_item(item)))
        logger.info("[FEED PROCESSOR] %s", batch.summary())
        return batch

    # ------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------

    async def process_item(self, item: InboundItem) -> ItemResult:
        """Process one item; never raises."""
        post_id = self._provisional_id(item)
        stage = "normalize"
        try:
            post = self.normalizer.normalize(item)
            post_id = post.post_id

            stage = "classify"
            classification = self._classify(post)

            if classification.is_disallowed:
                logger.info("[FEED PROCESSOR] %s filtered: %s", post_id, classification.disallowed_reason)
                return self._finish(ItemResult(post_id, ProcessingOutcome.FILTERED, classification.disallowed_reason))

            if classification.requires_age_gate and not self.dispatcher.accepts_age_gated(post):
                logger.info("[FEED PROCESSOR] %s filtered: %s", post_id, NO_RESTRICTED_DESTINATION)
                return self._finish(ItemResult(post_id, ProcessingOutcome.FILTERED, NO_RESTRICTED_DESTINATION))

            async with self._claim(post_id):
                stage = "dedup"
                if not await self.dedup.should_process(post_id):
                    logger.info("[FEED PROCESSOR] %s already processed; skipping", post_id)
                    return self._finish(
                        ItemResult(post_id, ProcessingOutcome.SUCCESS, "Already processed", deduplicated=True)
                    )

                stage = "throttle"
                if self._throttled(post):
                    logger.info("[FEED PROCESSOR] %s filtered: %s %s", post_id, FEED_THROTTLED, post.feed_id)
                    return self._finish(ItemResult(post_id, ProcessingOutcome.FILTERED, FEED_THROTTLED))

                stage = "dispatch"
                result = await self._dispatch(post, classification)
                if not result.ok:
                    outcome = ProcessingOutcome.FAILED if result.retryable else ProcessingOutcome.FILTERED
                    logger.warning(
                        "[FEED PROCESSOR] Dispatch of %s failed (%s): %s",
                        post_id, "transient" if result.retryable else "permanent", result.error,
                    )
                    return self._finish(ItemResult(post_id, outcome, result.error))

                stage = "record"
                try:
                    await self.dedup.mark_processed(post, result, classification)
                except Exception:
                    logger.exception("[FEED PROCESSOR] %s was posted but could not be marked as processed", post_id)

            logger.info("[FEED PROCESSOR] Posted %s (age gate: %s)", post_id, classification.requires_age_gate)
            return self._finish(ItemResult(post_id, ProcessingOutcome.SUCCESS))

        except Exception as exc:
            logger.exception("[FEED PROCESSOR] Unexpected error for %s at stage %s", post_id, stage)
            return self._finish(ItemResult(post_id, ProcessingOutcome.FAILED, f"{stage} error: {exc}"))

    @asynccontextmanager
    async def _claim(self, post_id: str) -> AsyncIterator[None]:
        """Hold the per-post lock; the lock is dropped once nobody holds or awaits it."""
        lock = self._claims.setdefault(post_id, asyncio.Lock())
        self._claim_holders[post_id] = self._claim_holders.get(post_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._claim_holders[post_id] -= 1
            if not self._claim_holders[post_id]:
                del self._claim_holders[post_id]
                del self._claims[post_id]

    def _throttled(self, post: CanonicalPost) -> bool:
        if self.feed_throttle is None or post.source_type is not SourceType.FEED:
            return False
        return not self.feed_throttle.admit(post.feed_id or "unknown").allowed

    def throttle_summary(self) -> Optional[Dict[str, int]]:
        """Figures of the per-feed throttle for ``/stats``; None when disabled."""
        if self.feed_throttle is None:
            return None
        return {
            "maxPostsPerHour": self.feed_throttle.max_requests,
            "activeSources": self.feed_throttle.active_origins(),
        }

    def _classify(self, post: CanonicalPost) -> ClassificationResult:
        try:
            return self.classifier.classify_post(post)
        except Exception:
            logger.exception("[FEED PROCESSOR] Classifier failed for %s; treating as unrestricted", post.post_id)
            return ClassificationResult.unrestricted()

    async def _dispatch(self, post: CanonicalPost, classification: ClassificationResult) -> DispatchResult:
        try:
            return await asyncio.wait_for(
                self.dispatcher.dispatch(post, classification), timeout=self.dispatch_timeout
            )
        except asyncio.TimeoutError:
            return DispatchResult.transient(f"Dispatch timed out after {self.dispatch_timeout:g}s")
        except DispatchError as exc:
            return DispatchResult(ok=False, error=str(exc), retryable=exc.retryable)

    def _finish(self, result: ItemResult) -> ItemResult:
        self.stats.record(result)
        return result

    def _provisional_id(self, item: InboundItem) -> str:
        match item:
            case FeedItem(raw=raw):
                return self.normalizer.post_id_for(raw.guid)
            case ManualItem(submission=submission):
                return submission.url
            case _:
                return "unknown"
