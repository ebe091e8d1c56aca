"""
Pytest configuration and fixtures for feedrelay tests.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from feedrelay.datatypes.outcome_datatypes import ClassificationResult, DispatchResult  # noqa: E402
from feedrelay.datatypes.post_datatypes import CanonicalPost, SourceType  # noqa: E402


class FakeDispatcher:
    """In-memory dispatcher recording every call.

    ``results`` maps a post_id to the DispatchResult (or exception) to return
    for it; anything else succeeds.
    """

    def __init__(self, accepts_age_gated: bool = True, ready: bool = True) -> None:
        self.calls: List[str] = []
        self.results: Dict[str, object] = {}
        self._accepts_age_gated = accepts_age_gated
        self._ready = ready

    @property
    def is_ready(self) -> bool:
        return self._ready

    def accepts_age_gated(self, post: CanonicalPost) -> bool:
        return self._accepts_age_gated

    async def dispatch(self, post: CanonicalPost, classification: ClassificationResult) -> DispatchResult:
        self.calls.append(post.post_id)
        result = self.results.get(post.post_id)
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, DispatchResult):
            return result
        return DispatchResult.success(message_id=len(self.calls), channel_id=100)


@pytest.fixture()
def fake_dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


def build_post(
    post_id: str = "instagram:ABC",
    title: str = "A sunny day",
    body_text: str = "A sunny day at the beach",
    author: str = "",
    target_guild_id: Optional[int] = None,
) -> CanonicalPost:
    return CanonicalPost(
        post_id=post_id,
        source_type=SourceType.FEED,
        title=title,
        body_text=body_text,
        author=author,
        published_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        link="https://www.instagram.com/p/ABC/",
        target_guild_id=target_guild_id,
    )


@pytest.fixture()
def make_post():
    return build_post


@pytest.fixture()
def dispatcher_factory():
    return FakeDispatcher
