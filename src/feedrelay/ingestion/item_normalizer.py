"""
Item normalization.

Both entry points end up here: a feed item is normalized directly, a manual
submission is first turned into an equivalent :class:`RawItem` and then goes
through exactly the same code. That way a post submitted by hand and the same
post delivered by the feed share one ``post_id`` and one body text.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, List, Optional
from urllib.parse import urlparse

from feedrelay.datatypes.feed_datatypes import (
    Enclosure,
    FeedItem,
    InboundItem,
    ManualItem,
    ManualSubmission,
    RawItem,
)
from feedrelay.datatypes.post_datatypes import CanonicalPost, MediaKind, MediaRef, SourceType
from feedrelay.util.format_utils import clean_text, truncate
from feedrelay.util.logger import get_logger

logger = get_logger("item_normalizer")

POST_PATH_PATTERNS = (
    re.compile(r"/p/([\w-]+)"),
    re.compile(r"/reel/([\w-]+)"),
    re.compile(r"/tv/([\w-]+)"),
)
IMG_SRC_PATTERN = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
VIDEO_EXTENSIONS = (".mp4", ".mov", ".webm", ".m4v")


def extract_post_identifier(url: str) -> str:
    """Return the post identifier embedded in a post URL.

    ``/p/<id>``, ``/reel/<id>`` and ``/tv/<id>`` are recognised. Any other URL
    falls back to the first 11 hex characters of its MD5 digest, which keeps
    the identifier stable for repeated submissions of the same link.
    """
    for pattern in POST_PATH_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return hashlib.md5(url.encode("utf-8")).hexdigest()[:11]


def infer_media_kind(url: str, media_type: str = "") -> MediaKind:
    """Classify a media URL by its declared type, else by its file extension."""
    media_type = (media_type or "").lower()
    if media_type.startswith("image/") or media_type == "image":
        return MediaKind.IMAGE
    if media_type.startswith("video/") or media_type == "video":
        return MediaKind.VIDEO

    path = urlparse(url).path.lower()
    if path.endswith(IMAGE_EXTENSIONS):
        return MediaKind.IMAGE
    if path.endswith(VIDEO_EXTENSIONS):
        return MediaKind.VIDEO
    return MediaKind.OTHER


def parse_published_at(value: Optional[str], now: Callable[[], datetime]) -> datetime:
    """Parse an ISO-8601 or RFC-822 timestamp into an aware UTC datetime.

    Unparseable or missing values fall back to ``now()``.
    """
    if not value:
        return now()
    text = value.strip()

    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            parsed = None

    if parsed is None:
        logger.debug("[NORMALIZER] Unparseable publish date %r, using current time", value)
        return now()
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # offset pushes the instant outside the datetime range
        logger.debug("[NORMALIZER] Publish date %r out of range, using current time", value)
        return now()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ItemNormalizer:
    """Builds :class:`CanonicalPost` objects from inbound items.

    Args:
        provider: Prefix of every ``post_id`` (``<provider>:<guid>``).
        title_max_length: Characters kept in the display title before ``...``.
        default_author: Author used for manual submissions.
        clock: Source of the current UTC time, used for missing dates.
    """

    def __init__(
        self,
        provider: str = "instagram",
        title_max_length: int = 100,
        default_author: str = "",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.provider = provider
        self.title_max_length = title_max_length
        self.default_author = default_author
        self._clock = clock

    def post_id_for(self, guid: str) -> str:
        return f"{self.provider}:{guid}"

    def normalize(self, item: InboundItem) -> CanonicalPost:
        """Convert either variant of :data:`InboundItem` into a canonical post."""
        match item:
            case FeedItem(raw=raw, feed_id=feed_id):
                return self._from_raw(raw, SourceType.FEED, feed_id=feed_id)
            case ManualItem(submission=submission):
                raw = self.synthesize_raw_item(submission)
                return self._from_raw(raw, SourceType.MANUAL, target_guild_id=submission.guild_id)
            case _:
                raise TypeError(f"Unsupported inbound item: {type(item).__name__}")

    def synthesize_raw_item(self, submission: ManualSubmission) -> RawItem:
        """Build the feed item that the provider would have delivered for a manual submission."""
        enclosures: List[Enclosure] = []
        if submission.image_url:
            enclosures.append(Enclosure(url=submission.image_url, media_type="image/jpeg"))
        if submission.video_url:
            enclosures.append(Enclosure(url=submission.video_url, media_type="video/mp4"))

        return RawItem(
            guid=extract_post_identifier(submission.url),
            title=submission.caption,
            link=submission.url,
            description=submission.caption,
            author=self.default_author or None,
            published_at=None,
            enclosures=enclosures,
        )

    def _from_raw(
        self,
        raw: RawItem,
        source_type: SourceType,
        feed_id: Optional[str] = None,
        target_guild_id: Optional[int] = None,
    ) -> CanonicalPost:
        title = truncate(clean_text(raw.title), self.title_max_length)
        body_text = clean_text(raw.description) or clean_text(raw.content) or clean_text(raw.title)

        return CanonicalPost(
            post_id=self.post_id_for(raw.guid),
            source_type=source_type,
            title=title,
            body_text=body_text,
            author=clean_text(raw.author),
            published_at=parse_published_at(raw.published_at, self._clock),
            link=raw.link,
            media_refs=self._collect_media(raw),
            target_guild_id=target_guild_id,
            feed_id=feed_id,
        )

    def _collect_media(self, raw: RawItem) -> List[MediaRef]:
        refs: List[MediaRef] = []
        seen = set()

        candidates = [(e.url, e.media_type) for e in raw.enclosures]
        for source in (raw.description, raw.content):
            if source:
                candidates.extend((url, "") for url in IMG_SRC_PATTERN.findall(source))

        for url, media_type in candidates:
            url = (url or "").strip()
            if not url.lower().startswith(("http://", "https://")) or url in seen:
                continue
            seen.add(url)
            refs.append(MediaRef(url=url, media_type=media_type, kind=infer_media_kind(url, media_type)))
        return refs
