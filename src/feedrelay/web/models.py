"""
Response bodies of the HTTP endpoints.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from feedrelay.datatypes.outcome_datatypes import BatchResult, ItemResult


class ProcessedCounts(BaseModel):
    success: int = 0
    filtered: int = 0
    failed: int = 0


class ItemResultModel(BaseModel):
    post_id: str
    outcome: str
    reason: Optional[str] = None
    deduplicated: bool = False

    @classmethod
    def from_result(cls, result: ItemResult) -> "ItemResultModel":
        return cls(**result.to_dict())


class WebhookResponse(BaseModel):
    success: bool = True
    processed: ProcessedCounts
    message: str
    items: List[ItemResultModel] = Field(default_factory=list)

    @classmethod
    def from_batch(cls, batch: BatchResult) -> "WebhookResponse":
        return cls(
            processed=ProcessedCounts(**batch.counts()),
            message=batch.summary(),
            items=[ItemResultModel.from_result(r) for r in batch.per_item],
        )


class ManualResponse(BaseModel):
    success: bool
    post_id: str
    outcome: str
    filtered: bool = False
    deduplicated: bool = False
    retryable: bool = False
    reason: Optional[str] = None
    message: str


class RetryableErrorResponse(BaseModel):
    success: bool = False
    error: str = "Internal processing error"
    retryable: bool = True


class HealthResponse(BaseModel):
    service: str
    status: str
    timestamp: str
    environment: str
    checks: Dict[str, str]


class StatsResponse(BaseModel):
    service: str
    stats: Dict[str, Any]
    timestamp: str
