from typing import Any, Dict

DEFAULT_FIELD_WEIGHTS: Dict[str, float] = {
    "title": 0.4,
    "body": 0.3,
    "tags": 0.2,
    "author": 0.1,
}


class ClassifierSettings:
    """Helper exposing typed accessors for the ``classifier`` config section.

    The confidence constants are heuristics; they are kept here so they can be
    tuned against labeled data without touching the scoring code.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    @property
    def lexicon_path(self) -> str | None:
        val = self.data.get("lexicon_path")
        return str(val) if val else None

    @property
    def term_weight(self) -> float:
        return float(self.data.get("term_weight", 0.2))

    @property
    def age_gate_threshold(self) -> float:
        return float(self.data.get("age_gate_threshold", 0.25))

    @property
    def body_snippet_length(self) -> int:
        return int(self.data.get("body_snippet_length", 500))

    @property
    def field_weights(self) -> Dict[str, float]:
        """Per-field weights as configured; the defaults when the key is absent.

        A partial mapping is returned as is so the classifier rejects it at startup.
        """
        weights = self.data.get("field_weights")
        if not isinstance(weights, dict):
            return dict(DEFAULT_FIELD_WEIGHTS)
        return {name: float(value) for name, value in weights.items()}
