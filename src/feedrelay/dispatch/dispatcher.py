from __future__ import annotations

from typing import Protocol, runtime_checkable

from feedrelay.datatypes.outcome_datatypes import ClassificationResult, DispatchResult
from feedrelay.datatypes.post_datatypes import CanonicalPost


@runtime_checkable
class Dispatcher(Protocol):
    """Anything able to deliver a canonical post to its destination.

    ``dispatch`` reports failures through :class:`DispatchResult` and may also
    raise :class:`feedrelay.errors.DispatchError`; ``retryable`` tells the
    processor whether redelivering the item could ever succeed.
    """

    @property
    def is_ready(self) -> bool: ...

    def accepts_age_gated(self, post: CanonicalPost) -> bool: ...

    async def dispatch(self, post: CanonicalPost, classification: ClassificationResult) -> DispatchResult: ...
