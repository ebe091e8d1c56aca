import html
import re
from typing import List

HTML_TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")
HASHTAG_PATTERN = re.compile(r"#[A-Za-z0-9_]+")
ELLIPSIS = "..."


def clean_text(raw: str | None) -> str:
    """Strip HTML tags, decode entities and collapse whitespace.

    Args:
        raw: Caption or description as delivered by the feed (may be None).

    Returns:
        Plain single-line text, empty string for missing input.
    """
    if not raw:
        return ""
    text = HTML_TAG_PATTERN.sub("", raw)
    text = html.unescape(text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def truncate(text: str, max_length: int, suffix: str = ELLIPSIS) -> str:
    """Cut ``text`` to ``max_length`` characters and append ``suffix`` when cut."""
    if max_length <= 0:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix


def truncate_to_limit(text: str, limit: int, suffix: str = ELLIPSIS) -> str:
    """Cut ``text`` so that the result, suffix included, fits in ``limit`` characters."""
    if len(text) <= limit:
        return text
    return text[: max(limit - len(suffix), 0)] + suffix


def extract_hashtags(text: str) -> List[str]:
    """Return the distinct hashtags of ``text`` in order of first appearance."""
    if not text:
        return []
    return list(dict.fromkeys(HASHTAG_PATTERN.findall(text)))

