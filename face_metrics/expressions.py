"""
Expression Scores
=================
Closed label set produced by the expression classifier plus the small
helpers shared by the per-frame and per-session code.
"""

from __future__ import annotations

from typing import Dict, Iterator, Mapping, Tuple

# Fixed ordering; also the tie-break order for dominant expressions.
EXPRESSION_LABELS: Tuple[str, ...] = (
    "neutral",
    "happy",
    "sad",
    "angry",
    "fearful",
    "disgusted",
    "surprised",
)

EXPRESSION_EMOJI: Dict[str, str] = {
    "neutral": "😐",
    "happy": "😊",
    "sad": "😢",
    "angry": "😠",
    "fearful": "😨",
    "disgusted": "🤢",
    "surprised": "😲",
}


class ExpressionScores(Mapping[str, float]):
    """Immutable label → probability mapping over ``EXPRESSION_LABELS``.

    Values need not sum to 1 but each must lie in [0, 1]. Labels missing
    from the input default to 0.0; unknown labels are rejected.
    """

    __slots__ = ("_scores",)

    def __init__(self, scores: Mapping[str, float] | None = None, **kwargs: float) -> None:
        merged: Dict[str, float] = dict(scores or {})
        merged.update(kwargs)
        unknown = set(merged) - set(EXPRESSION_LABELS)
        if unknown:
            raise ValueError(f"Unknown expression labels: {sorted(unknown)}")

        values: Dict[str, float] = {}
        for label in EXPRESSION_LABELS:
            value = float(merged.get(label, 0.0))
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Expression score for '{label}' out of [0, 1]: {value}")
            values[label] = value
        self._scores = values

    def __getitem__(self, label: str) -> float:
        return self._scores[label]

    def __iter__(self) -> Iterator[str]:
        return iter(EXPRESSION_LABELS)

    def __len__(self) -> int:
        return len(EXPRESSION_LABELS)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self._scores[label] for label in EXPRESSION_LABELS))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v:.3f}" for k, v in self._scores.items())
        return f"ExpressionScores({inner})"

    @property
    def peak(self) -> float:
        """Highest score across all labels."""
        return max(self._scores.values())

    def to_dict(self) -> Dict[str, float]:
        return dict(self._scores)


def dominant_expression(scores: Mapping[str, float]) -> str:
    """Label with the highest score; ties go to the earlier label."""
    best_label = EXPRESSION_LABELS[0]
    best_score = float("-inf")
    for label in EXPRESSION_LABELS:
        score = scores.get(label, 0.0)
        if score > best_score:
            best_label, best_score = label, score
    return best_label


def expression_emoji(label: str) -> str:
    return EXPRESSION_EMOJI.get(label, EXPRESSION_EMOJI["neutral"])
