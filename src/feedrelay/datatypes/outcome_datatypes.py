"""
Result types produced by the pipeline stages.

- `ClassificationResult`: output of the content classifier.
- `DispatchResult`: what the chat-platform poster reports back.
- `ItemResult` / `BatchResult`: per-item and per-request outcomes returned
  to the HTTP boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ProcessingOutcome(Enum):
    """Final state of one item."""

    SUCCESS = "success"
    FILTERED = "filtered"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True, frozen=True)
class ClassificationResult:
    """Verdict of the content classifier.

    Attributes:
        requires_age_gate: True when the overall confidence reaches the
            age-gate threshold.
        confidence_score: Weighted confidence in ``[0, 1]``.
        matched_terms: Distinct lexicon terms found, in first-match order.
        categories: Lexicon categories that contributed a match.
        disallowed_reason: Set when a disallowed-content rule matched; the
            item must not be posted at all.
    """

    requires_age_gate: bool
    confidence_score: float
    matched_terms: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()
    disallowed_reason: Optional[str] = None

    @classmethod
    def unrestricted(cls) -> "ClassificationResult":
        """Result used when nothing matched, or when the classifier failed open."""
        return cls(requires_age_gate=False, confidence_score=0.0)

    @property
    def is_disallowed(self) -> bool:
        return self.disallowed_reason is not None


@dataclass(slots=True, frozen=True)
class DispatchResult:
    """Outcome reported by a dispatcher for one post."""

    ok: bool
    error: Optional[str] = None
    retryable: bool = True
    message_id: Optional[int] = None
    channel_id: Optional[int] = None

    @classmethod
    def success(cls, message_id: Optional[int] = None, channel_id: Optional[int] = None) -> "DispatchResult":
        return cls(ok=True, message_id=message_id, channel_id=channel_id)

    @classmethod
    def transient(cls, error: str) -> "DispatchResult":
        return cls(ok=False, error=error, retryable=True)

    @classmethod
    def permanent(cls, error: str) -> "DispatchResult":
        return cls(ok=False, error=error, retryable=False)


@dataclass(slots=True)
class ItemResult:
    """Outcome of one item in a batch."""

    post_id: str
    outcome: ProcessingOutcome
    reason: Optional[str] = None
    deduplicated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "post_id": self.post_id,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "deduplicated": self.deduplicated,
        }


@dataclass(slots=True)
class BatchResult:
    """Aggregated outcome of every item of one request."""

    total: int = 0
    succeeded: int = 0
    filtered: int = 0
    failed: int = 0
    per_item: List[ItemResult] = field(default_factory=list)

    def add(self, result: ItemResult) -> None:
        self.per_item.append(result)
        self.total += 1
        match result.outcome:
            case ProcessingOutcome.SUCCESS:
                self.succeeded += 1
            case ProcessingOutcome.FILTERED:
                self.filtered += 1
            case ProcessingOutcome.FAILED:
                self.failed += 1

    def counts(self) -> Dict[str, int]:
        return {"success": self.succeeded, "filtered": self.filtered, "failed": self.failed}

    def summary(self) -> str:
        return (
            f"Processed {self.total} items: {self.succeeded} posted, "
            f"{self.filtered} filtered, {self.failed} failed"
        )
