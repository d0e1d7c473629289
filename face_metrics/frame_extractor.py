"""
Frame Metrics Extractor
=======================
Turns the raw detections of one video frame into at most one
``FaceMetrics`` value.

Single-subject assumption: only one face per frame is scored.  Which one is
an explicit policy (``FaceSelection``); the default keeps the first
detection the detector reports.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

from .confidence import aggregate_confidence
from .detection import DetectorOptions, FaceDetector, RawDetection
from .expressions import ExpressionScores, dominant_expression
from .landmark_geometry import (
    DEFAULT_REFERENCE_FRAME,
    HeadPosition,
    ReferenceFrame,
    eye_contact,
    head_position,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_GATE = 0.5


class FaceSelection(str, enum.Enum):
    """Which detection to score when a frame holds several faces."""

    FIRST = "first"
    HIGHEST_SCORE = "highest_score"


@dataclass(frozen=True)
class FaceMetrics:
    """Per-frame metrics for the interviewee's face. Never mutated."""

    expressions: ExpressionScores
    eye_contact: bool
    head_position: HeadPosition
    confidence: float

    @property
    def dominant_expression(self) -> str:
        return dominant_expression(self.expressions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expressions": self.expressions.to_dict(),
            "eyeContact": self.eye_contact,
            "headPosition": self.head_position.to_dict(),
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ExtractorConfig:
    confidence_gate: float = DEFAULT_CONFIDENCE_GATE
    face_selection: FaceSelection = FaceSelection.FIRST
    reference_frame: ReferenceFrame = DEFAULT_REFERENCE_FRAME
    detector_options: DetectorOptions = field(default_factory=DetectorOptions)


class FrameMetricsExtractor:
    """Runs one detection pass per frame and derives ``FaceMetrics``.

    ``extract`` is pure and raises on malformed detections; ``process_frame``
    wraps the detector call and never raises, so a bad frame is skipped
    instead of ending the session.
    """

    def __init__(
        self,
        detector: Optional[FaceDetector] = None,
        config: Optional[ExtractorConfig] = None,
    ) -> None:
        self.detector = detector
        self.config = config or ExtractorConfig()
        self.frames_seen = 0
        self.frames_accepted = 0
        self.frames_failed = 0

    def select_detection(self, detections: Sequence[RawDetection]) -> Optional[RawDetection]:
        if not detections:
            return None
        if self.config.face_selection is FaceSelection.HIGHEST_SCORE:
            # max() keeps the first of equal scores
            return max(detections, key=lambda d: d.score)
        return detections[0]

    def extract(
        self,
        detections: Sequence[RawDetection],
        frame: Optional[ReferenceFrame] = None,
    ) -> Optional[FaceMetrics]:
        face = self.select_detection(detections)
        if face is None:
            return None

        confidence = aggregate_confidence(face.score, face.expressions)
        metrics = FaceMetrics(
            expressions=face.expressions,
            eye_contact=eye_contact(face.left_eye, face.right_eye),
            head_position=head_position(face.landmarks, frame or self.config.reference_frame),
            confidence=confidence,
        )
        if confidence <= self.config.confidence_gate:
            logger.debug(f"Frame below confidence gate ({confidence:.3f})")
            return None
        return metrics

    def record(
        self,
        detections: Sequence[RawDetection],
        frame: Optional[ReferenceFrame] = None,
    ) -> Optional[FaceMetrics]:
        """``extract`` with counters and per-frame error recovery."""
        self.frames_seen += 1
        try:
            metrics = self.extract(detections, frame)
        except Exception as e:
            self.frames_failed += 1
            logger.warning(f"Skipping frame {self.frames_seen}: {e}")
            return None
        if metrics is not None:
            self.frames_accepted += 1
        return metrics

    async def process_frame(
        self,
        frame: Any,
        frame_size: Optional[Tuple[float, float]] = None,
    ) -> Optional[FaceMetrics]:
        """Detect faces in ``frame`` and derive metrics for the selected one."""
        if self.detector is None:
            raise RuntimeError("FrameMetricsExtractor has no detector attached")

        try:
            reference = ReferenceFrame(*frame_size) if frame_size else None
        except ValueError as e:
            self.frames_seen += 1
            self.frames_failed += 1
            logger.warning(f"Skipping frame with unusable size: {e}")
            return None
        try:
            detections = await self.detector.detect_faces(frame, self.config.detector_options)
        except Exception as e:
            self.frames_seen += 1
            self.frames_failed += 1
            logger.error(f"Error detecting face: {e}")
            return None
        return self.record(detections, reference)

    def stats(self) -> Dict[str, int]:
        return {
            "frames_seen": self.frames_seen,
            "frames_accepted": self.frames_accepted,
            "frames_failed": self.frames_failed,
        }
