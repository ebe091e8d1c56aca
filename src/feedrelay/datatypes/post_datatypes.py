"""
Canonical, source-agnostic representation of one piece of inbound content.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from feedrelay.util.format_utils import extract_hashtags


class SourceType(Enum):
    """Entry point an item arrived through."""

    FEED = "feed"
    MANUAL = "manual"

    def __str__(self) -> str:
        return self.value


class MediaKind(Enum):
    """Coarse media classification used when rendering the post."""

    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True, frozen=True)
class MediaRef:
    """A media URL attached to a post, tagged with its inferred kind."""

    url: str
    media_type: str
    kind: MediaKind


@dataclass(slots=True)
class CanonicalPost:
    """Normalized post handed to classification, dedup and dispatch.

    Attributes:
        post_id: ``<provider>:<guid>``; stable across redeliveries of the
            same source item and identical for both entry points.
        source_type: Entry point the item arrived through.
        title: Display title, truncated to a bounded length.
        body_text: Full plain-text body.
        author: Author or channel name (may be empty).
        published_at: Publication time (UTC).
        link: Public URL of the original post.
        media_refs: Attached media, images first as delivered.
        target_guild_id: Guild requested by a manual submission, if any.
        feed_id: Identifier of the source feed, if known.
    """

    post_id: str
    source_type: SourceType
    title: str
    body_text: str
    author: str
    published_at: datetime
    link: str
    media_refs: List[MediaRef] = field(default_factory=list)
    target_guild_id: Optional[int] = None
    feed_id: Optional[str] = None

    @property
    def hashtags(self) -> List[str]:
        return extract_hashtags(self.body_text)

    @property
    def images(self) -> List[MediaRef]:
        return [ref for ref in self.media_refs if ref.kind is MediaKind.IMAGE]
