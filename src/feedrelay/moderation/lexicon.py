"""
Lexicon loading.

The lexicon is data, not code: a YAML document with a ``version``, a mapping
of category name to terms, and a ``disallowed`` section holding the rules
that filter a post outright.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from feedrelay.util.logger import get_logger

logger = get_logger("lexicon")

DEFAULT_LEXICON_PATH = Path(__file__).with_name("default_lexicon.yml")


@dataclass(slots=True, frozen=True)
class DisallowedRules:
    """Rules that make a post ineligible for relaying."""

    blocked_hashtags: Tuple[str, ...] = ()
    spam_indicators: Tuple[str, ...] = ()
    max_hashtags: int = 15
    max_caps_ratio: float = 0.5
    caps_min_length: int = 20


@dataclass(slots=True, frozen=True)
class Lexicon:
    version: int
    categories: Dict[str, Tuple[str, ...]]
    disallowed: DisallowedRules = field(default_factory=DisallowedRules)

    @property
    def term_count(self) -> int:
        return sum(len(terms) for terms in self.categories.values())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Lexicon":
        """Build a lexicon from its YAML mapping.

        Raises:
            ValueError: If the categories section is missing or empty.
        """
        raw_categories = data.get("categories")
        if not isinstance(raw_categories, Mapping) or not raw_categories:
            raise ValueError("Lexicon must define at least one category")

        categories: Dict[str, Tuple[str, ...]] = {}
        for name, terms in raw_categories.items():
            if not isinstance(terms, list):
                raise ValueError(f"Lexicon category {name!r} must be a list of terms")
            categories[str(name)] = tuple(str(t).lower() for t in terms if str(t).strip())

        rules = data.get("disallowed") or {}
        disallowed = DisallowedRules(
            blocked_hashtags=tuple(str(t).lower() for t in rules.get("blocked_hashtags", [])),
            spam_indicators=tuple(str(t).lower() for t in rules.get("spam_indicators", [])),
            max_hashtags=int(rules.get("max_hashtags", 15)),
            max_caps_ratio=float(rules.get("max_caps_ratio", 0.5)),
            caps_min_length=int(rules.get("caps_min_length", 20)),
        )
        return cls(version=int(data.get("version", 1)), categories=categories, disallowed=disallowed)


def load_lexicon(path: Optional[Path | str] = None) -> Lexicon:
    """Read a lexicon file, defaulting to the bundled one.

    Args:
        path: Optional override (``classifier.lexicon_path``).

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the document is not a valid lexicon.
    """
    lexicon_path = Path(path) if path else DEFAULT_LEXICON_PATH
    with lexicon_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, Mapping):
        raise ValueError(f"Lexicon {lexicon_path} is not a mapping")

    lexicon = Lexicon.from_dict(data)
    logger.info(
        "[LEXICON] Loaded lexicon v%d from %s (%d terms in %d categories)",
        lexicon.version, lexicon_path, lexicon.term_count, len(lexicon.categories),
    )
    return lexicon
