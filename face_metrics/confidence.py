from __future__ import annotations

from typing import Mapping


def aggregate_confidence(detection_score: float, expressions: Mapping[str, float]) -> float:
    """Average of the detector's face score and the peak expression score.

    Favours frames where the detector is sure a face exists *and* the
    classifier is sure of its emotional read.
    """
    if not 0.0 <= detection_score <= 1.0:
        raise ValueError(f"Detection score out of [0, 1]: {detection_score}")
    if not expressions:
        raise ValueError("Expression scores are empty")
    return (detection_score + max(expressions.values())) / 2
