"""
Session Metrics Aggregator
==========================
Folds the ``FaceMetrics`` accepted during one interview into the summary
shown in the end-of-session report.

The fold only keeps counts and sums, so it can run incrementally while
frames arrive, in one batch at the end, or as partial folds merged
together.  All three give the same result.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from .expressions import EXPRESSION_LABELS
from .frame_extractor import FaceMetrics


@dataclass(frozen=True)
class SessionFaceSummary:
    """End-of-session face statistics.

    ``average_confidence`` and ``eye_contact_percentage`` are ``None`` when
    no frame was accepted; an empty session is not a 0 % score.
    """

    frame_count: int
    average_confidence: Optional[float]
    dominant_expressions: Dict[str, int]
    eye_contact_percentage: Optional[float]

    @classmethod
    def empty(cls) -> "SessionFaceSummary":
        return cls(
            frame_count=0,
            average_confidence=None,
            dominant_expressions={},
            eye_contact_percentage=None,
        )

    @property
    def is_empty(self) -> bool:
        return self.frame_count == 0

    @property
    def most_common_expression(self) -> Optional[str]:
        """Most frequent per-frame winner; ties go to the earlier label."""
        if not self.dominant_expressions:
            return None
        best = max(self.dominant_expressions.values())
        for label in EXPRESSION_LABELS:
            if self.dominant_expressions.get(label) == best:
                return label
        return None

    def expression_frequencies(self) -> Dict[str, float]:
        if self.is_empty:
            return {}
        return {
            label: count / self.frame_count
            for label, count in self.dominant_expressions.items()
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frameCount": self.frame_count,
            "averageConfidence": self.average_confidence,
            "dominantExpressions": dict(self.dominant_expressions),
            "eyeContactPercentage": self.eye_contact_percentage,
        }

    def report(self) -> Dict[str, str]:
        """Rounded view rendered by the "Visual Analysis" report card."""
        if self.is_empty:
            return {
                "Confidence Level": "n/a",
                "Eye Contact": "n/a",
                "Most Common Expression": "n/a",
            }
        return {
            "Confidence Level": f"{round(self.average_confidence * 100)}%",
            "Eye Contact": f"{round(self.eye_contact_percentage * 100)}%",
            "Most Common Expression": (self.most_common_expression or "neutral").capitalize(),
        }


@dataclass
class SessionMetricsAggregator:
    frame_count: int = 0
    confidence_sum: float = 0.0
    eye_contact_frames: int = 0
    expression_counts: Counter = field(default_factory=Counter)

    def add(self, metrics: FaceMetrics) -> None:
        self.frame_count += 1
        self.confidence_sum += metrics.confidence
        if metrics.eye_contact:
            self.eye_contact_frames += 1
        self.expression_counts[metrics.dominant_expression] += 1

    def extend(self, frames: Iterable[FaceMetrics]) -> "SessionMetricsAggregator":
        for metrics in frames:
            self.add(metrics)
        return self

    def merge(self, other: "SessionMetricsAggregator") -> "SessionMetricsAggregator":
        """New aggregator equal to folding both inputs' frames."""
        return SessionMetricsAggregator(
            frame_count=self.frame_count + other.frame_count,
            confidence_sum=self.confidence_sum + other.confidence_sum,
            eye_contact_frames=self.eye_contact_frames + other.eye_contact_frames,
            expression_counts=self.expression_counts + other.expression_counts,
        )

    def reset(self) -> None:
        self.frame_count = 0
        self.confidence_sum = 0.0
        self.eye_contact_frames = 0
        self.expression_counts = Counter()

    def summary(self) -> SessionFaceSummary:
        if self.frame_count == 0:
            return SessionFaceSummary.empty()
        # label order keeps the histogram stable across runs
        histogram = {
            label: self.expression_counts[label]
            for label in EXPRESSION_LABELS
            if self.expression_counts[label]
        }
        return SessionFaceSummary(
            frame_count=self.frame_count,
            average_confidence=self.confidence_sum / self.frame_count,
            dominant_expressions=histogram,
            eye_contact_percentage=self.eye_contact_frames / self.frame_count,
        )


def summarize_session(frames: Iterable[FaceMetrics]) -> SessionFaceSummary:
    return SessionMetricsAggregator().extend(frames).summary()
