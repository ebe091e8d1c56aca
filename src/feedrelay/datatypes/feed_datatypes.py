"""
Inbound data structures for the two entry points of the pipeline.

- `RawItem` / `InboundEnvelope`: the JSON body posted by the feed provider's
  webhook (RSS.app style). Both the camelCase keys and the RSS names
  (``pubDate``, ``enclosure``, ``feed.title``) are accepted.
- `ManualSubmission`: the operator form posted to ``/manual``.
- `FeedItem` / `ManualItem`: the tagged union handed to the normalizer.

These objects live for a single HTTP request only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Union


@dataclass(slots=True, frozen=True)
class Enclosure:
    """A media attachment of a feed item."""

    url: str
    media_type: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Enclosure":
        media_type = data.get("mediaType") or data.get("media_type") or data.get("type") or ""
        return cls(url=str(data.get("url", "")), media_type=str(media_type))


@dataclass(slots=True)
class RawItem:
    """One feed entry exactly as the provider described it.

    ``guid`` is unique within a provider, not globally.
    """

    guid: str
    title: str
    link: str
    description: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[str] = None
    enclosures: List[Enclosure] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawItem":
        """Build a RawItem from an already validated item mapping."""
        enclosures = [Enclosure.from_dict(e) for e in data.get("enclosures") or []]
        single = data.get("enclosure")
        if isinstance(single, Mapping) and single.get("url"):
            enclosures.append(Enclosure.from_dict(single))

        return cls(
            guid=str(data["guid"]).strip(),
            title=str(data["title"]),
            link=str(data["link"]).strip(),
            description=_optional_str(data.get("description")),
            content=_optional_str(data.get("content")),
            author=_optional_str(data.get("author")),
            published_at=_optional_str(data.get("publishedAt") or data.get("pubDate") or data.get("published_at")),
            enclosures=enclosures,
        )


@dataclass(slots=True)
class InboundEnvelope:
    """Top-level webhook body: the feed identity plus its new items."""

    source_feed_id: Optional[str]
    source_feed_title: Optional[str]
    items: List[RawItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InboundEnvelope":
        feed = data.get("feed") if isinstance(data.get("feed"), Mapping) else {}
        return cls(
            source_feed_id=_optional_str(data.get("sourceFeedId") or feed.get("id")),
            source_feed_title=_optional_str(data.get("sourceFeedTitle") or feed.get("title")),
            items=[RawItem.from_dict(item) for item in data.get("items", [])],
        )


@dataclass(slots=True)
class ManualSubmission:
    """Operator-entered post submitted through the manual form.

    Attributes:
        url: Public post URL (``https://<domain>/p/<id>/``).
        caption: Full caption text.
        image_url: Optional direct link to the image file.
        video_url: Optional direct link to the video file.
        post_type: One of ``image``, ``video`` or ``carousel``.
        guild_id: Optional guild the post should be delivered to.
    """

    url: str
    caption: str
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    post_type: str = "image"
    guild_id: Optional[int] = None


@dataclass(slots=True, frozen=True)
class FeedItem:
    """An item delivered by the feed webhook."""

    raw: RawItem
    feed_id: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ManualItem:
    """An item entered through the manual submission form."""

    submission: ManualSubmission


InboundItem = Union[FeedItem, ManualItem]


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None
