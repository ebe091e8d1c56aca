"""
Keyword-based content classifier.

Each text field of a post is scored independently: the number of distinct
lexicon terms it contains times ``term_weight``, capped at 1.0. The field
scores are combined with fixed weights (title, body snippet, hashtags,
author) and the post must be age-gated once the combined score reaches the
threshold. Separately, the disallowed-content rules of the lexicon decide
whether the post may be relayed at all.

Scoring is pure and deterministic; the same subject always yields the same
result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from feedrelay.configuration.classifier_settings import DEFAULT_FIELD_WEIGHTS
from feedrelay.datatypes.outcome_datatypes import ClassificationResult
from feedrelay.datatypes.post_datatypes import CanonicalPost
from feedrelay.errors import ClassificationError
from feedrelay.moderation.lexicon import Lexicon
from feedrelay.util.format_utils import extract_hashtags
from feedrelay.util.logger import get_logger

logger = get_logger("content_classifier")


@dataclass(slots=True, frozen=True)
class ClassificationSubject:
    """The text fields of a post that take part in classification."""

    title: str = ""
    body: str = ""
    tags: Tuple[str, ...] = ()
    author: str = ""

    @classmethod
    def from_post(cls, post: CanonicalPost) -> "ClassificationSubject":
        return cls(
            title=post.title,
            body=post.body_text,
            tags=tuple(post.hashtags),
            author=post.author,
        )


@dataclass(slots=True, frozen=True)
class FieldScore:
    confidence: float
    matches: Tuple[Tuple[str, str], ...]  # (term, category)


class ContentClassifier:
    """Scores posts against a :class:`Lexicon`.

    Args:
        lexicon: Topic terms and disallowed-content rules.
        term_weight: Confidence contributed by each distinct matched term.
        age_gate_threshold: Overall confidence at which age-gating is required.
        field_weights: Weights for ``title``, ``body``, ``tags`` and ``author``.
        body_snippet_length: Characters of the body that are scored.
    """

    def __init__(
        self,
        lexicon: Lexicon,
        term_weight: float = 0.2,
        age_gate_threshold: float = 0.25,
        field_weights: Optional[Dict[str, float]] = None,
        body_snippet_length: int = 500,
    ) -> None:
        weights = dict(field_weights or DEFAULT_FIELD_WEIGHTS)
        if set(weights) != set(DEFAULT_FIELD_WEIGHTS):
            raise ValueError(f"field_weights must define exactly {sorted(DEFAULT_FIELD_WEIGHTS)}")
        if abs(sum(weights.values()) - 1.0) > 1e-6:
            raise ValueError("field_weights must sum to 1.0")

        self.lexicon = lexicon
        self.term_weight = term_weight
        self.age_gate_threshold = age_gate_threshold
        self.field_weights = weights
        self.body_snippet_length = body_snippet_length

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score_text(self, text: str) -> FieldScore:
        """Score one field: ``min(1.0, term_weight * distinct matches)``."""
        if not text:
            return FieldScore(0.0, ())
        lowered = text.lower()
        matches: List[Tuple[str, str]] = []
        seen = set()
        for category, terms in self.lexicon.categories.items():
            for term in terms:
                if term in seen or term not in lowered:
                    continue
                seen.add(term)
                matches.append((term, category))
        return FieldScore(min(1.0, self.term_weight * len(matches)), tuple(matches))

    def classify(self, subject: ClassificationSubject) -> ClassificationResult:
        """Classify a subject.

        Returns:
            The combined verdict, with matched terms and categories in first
            match order and ``disallowed_reason`` set when a filtering rule
            applies.
        """
        fields = {
            "title": subject.title,
            "body": subject.body[: self.body_snippet_length],
            "tags": " ".join(subject.tags),
            "author": subject.author,
        }

        overall = 0.0
        terms: List[str] = []
        categories: List[str] = []
        for name, text in fields.items():
            score = self.score_text(text)
            overall += self.field_weights[name] * score.confidence
            for term, category in score.matches:
                if term not in terms:
                    terms.append(term)
                if category not in categories:
                    categories.append(category)

        overall = min(1.0, max(0.0, round(overall, 6)))
        return ClassificationResult(
            requires_age_gate=overall >= self.age_gate_threshold,
            confidence_score=overall,
            matched_terms=tuple(terms),
            categories=tuple(categories),
            disallowed_reason=self.disallowed_reason(subject),
        )

    def disallowed_reason(self, subject: ClassificationSubject) -> Optional[str]:
        """Return why the subject must not be relayed, or None."""
        rules = self.lexicon.disallowed
        caption = subject.body
        hashtags = list(subject.tags) or extract_hashtags(caption)

        for tag in hashtags:
            tag_lower = tag.lower()
            if any(blocked.lstrip("#") in tag_lower for blocked in rules.blocked_hashtags):
                return f"Contains blocked hashtag: {tag}"

        caption_lower = caption.lower()
        for indicator in rules.spam_indicators:
            if indicator in caption_lower:
                return f"Contains spam indicator: {indicator}"

        if len(hashtags) > rules.max_hashtags:
            return f"Excessive hashtags: {len(hashtags)}"

        if len(caption) > rules.caps_min_length:
            caps = sum(1 for ch in caption if "A" <= ch <= "Z")
            if caps / len(caption) > rules.max_caps_ratio:
                return "Excessive capital letters"
        return None

    def classify_post(self, post: CanonicalPost) -> ClassificationResult:
        """Classify a canonical post.

        Raises:
            ClassificationError: If scoring fails unexpectedly.
        """
        try:
            result = self.classify(ClassificationSubject.from_post(post))
        except Exception as exc:
            raise ClassificationError(f"Failed to classify {post.post_id}: {exc}") from exc

        if result.matched_terms:
            logger.debug(
                "[CLASSIFIER] %s scored %.2f (age gate: %s) on %s",
                post.post_id, result.confidence_score, result.requires_age_gate,
                ", ".join(result.matched_terms),
            )
        return result
