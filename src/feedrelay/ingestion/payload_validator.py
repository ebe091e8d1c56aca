"""
Structural validation of inbound payloads.

Validation happens before any item is processed; the first problem found
raises :class:`ValidationError` naming the offending field (``items[1].guid``).
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

from feedrelay.datatypes.feed_datatypes import InboundEnvelope, ManualSubmission
from feedrelay.errors import ValidationError

REQUIRED_ITEM_FIELDS = ("title", "link", "guid")
POST_TYPES = ("image", "video", "carousel")
MANUAL_URL_PATTERN = re.compile(r"^https://(?P<host>[^/\s?#]+)/p/(?P<post_id>[\w-]+)/?", re.IGNORECASE)
SNOWFLAKE_PATTERN = re.compile(r"^\d{1,20}$")


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _validate_enclosures(value: Any, prefix: str) -> None:
    if value is None:
        return
    if not isinstance(value, list):
        raise ValidationError(prefix, f"{prefix} must be a list")
    for index, enclosure in enumerate(value):
        field = f"{prefix}[{index}]"
        if not isinstance(enclosure, Mapping):
            raise ValidationError(field, f"{field} must be an object")
        if not _is_non_empty_string(enclosure.get("url")):
            raise ValidationError(f"{field}.url", f"{field}.url is required")


def validate_envelope(payload: Any) -> InboundEnvelope:
    """Validate a decoded webhook body and build the envelope.

    Args:
        payload: The JSON-decoded request body.

    Returns:
        The parsed envelope with every item converted to a RawItem.

    Raises:
        ValidationError: If the body is not an object with an ``items`` list, or
            any item lacks a non-empty ``title``, ``link`` or ``guid``.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("body", "Invalid payload: expected a JSON object")

    items = payload.get("items")
    if not isinstance(items, list):
        raise ValidationError("items", "Invalid payload: items array required")

    for index, item in enumerate(items):
        prefix = f"items[{index}]"
        if not isinstance(item, Mapping):
            raise ValidationError(prefix, f"Invalid item: {prefix} must be an object")
        for name in REQUIRED_ITEM_FIELDS:
            if not _is_non_empty_string(item.get(name)):
                raise ValidationError(f"{prefix}.{name}", f"Invalid item: {prefix}.{name} is required")
        _validate_enclosures(item.get("enclosures"), f"{prefix}.enclosures")

    return InboundEnvelope.from_dict(payload)


def validate_manual_submission(payload: Any, allowed_domains: Iterable[str] = ()) -> ManualSubmission:
    """Validate an operator submission from the manual form.

    Args:
        payload: The JSON-decoded request body.
        allowed_domains: Hosts accepted in ``instagram_url``; empty accepts any.

    Returns:
        The parsed submission.

    Raises:
        ValidationError: Naming the first invalid field.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("body", "Invalid payload: expected a JSON object")

    url = payload.get("instagram_url")
    caption = payload.get("caption")
    if not _is_non_empty_string(url):
        raise ValidationError("instagram_url", "Missing required fields: instagram_url and caption")
    if not _is_non_empty_string(caption):
        raise ValidationError("caption", "Missing required fields: instagram_url and caption")

    url = url.strip()
    match = MANUAL_URL_PATTERN.match(url)
    if not match:
        raise ValidationError("instagram_url", "Invalid post URL format")

    domains = [d.lower() for d in allowed_domains]
    if domains and match.group("host").lower() not in domains:
        raise ValidationError("instagram_url", f"Unsupported domain: {match.group('host')}")

    media = {}
    for name in ("image_url", "video_url"):
        value = payload.get(name)
        if value in (None, ""):
            media[name] = None
            continue
        if not isinstance(value, str) or not _is_http_url(value.strip()):
            raise ValidationError(name, f"{name} must be an http(s) URL")
        media[name] = value.strip()

    post_type = payload.get("post_type") or "image"
    if post_type not in POST_TYPES:
        raise ValidationError("post_type", f"post_type must be one of {', '.join(POST_TYPES)}")

    guild_id = payload.get("guild_id")
    if guild_id in (None, ""):
        guild_id = None
    elif isinstance(guild_id, bool) or not SNOWFLAKE_PATTERN.match(str(guild_id)):
        raise ValidationError("guild_id", "guild_id must be a numeric ID")
    else:
        guild_id = int(guild_id)

    return ManualSubmission(
        url=url,
        caption=caption,
        image_url=media["image_url"],
        video_url=media["video_url"],
        post_type=post_type,
        guild_id=guild_id,
    )
