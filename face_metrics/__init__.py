"""
Interview Face Metrics
======================

Post-processing layer for the mock-interview webcam feed:
  - Eye contact from the eye-line angle (68-point landmarks)
  - Head position normalised against the capture resolution
  - Confidence from detector score + peak expression score
  - Confidence-gated per-frame metrics
  - Session summary (average confidence, expression histogram,
    eye-contact percentage)

Detection itself is pluggable: anything implementing ``FaceDetector``
can feed the extractor, or raw detections can be passed in directly.

Quick Start:
    from face_metrics import (
        FrameMetricsExtractor,
        RawDetection,
        SessionMetricsAggregator,
    )

    extractor = FrameMetricsExtractor()
    aggregator = SessionMetricsAggregator()

    detection = RawDetection.from_face_api(score, positions, expressions)
    metrics = extractor.extract([detection])
    if metrics is not None:
        aggregator.add(metrics)

    summary = aggregator.summary()
"""

__version__ = "0.3.0"

# ── Core derivation ─────────────────────────────────────────────────
from .confidence import aggregate_confidence
from .exceptions import (
    CameraAccessError,
    FaceMetricsError,
    InsufficientLandmarksError,
    ModelLoadError,
)
from .expressions import EXPRESSION_LABELS, ExpressionScores, dominant_expression
from .landmark_geometry import (
    HeadPosition,
    LandmarkPoint,
    ReferenceFrame,
    centroid,
    eye_contact,
    eye_line_angle,
    head_position,
)

# ── Detection contract ─────────────────────────────────────────────
from .detection import (
    DetectorOptions,
    FaceDetector,
    ModelLoader,
    ModelStage,
    RawDetection,
    manifest_stages,
)

# ── Per-frame and per-session ──────────────────────────────────────
from .frame_extractor import (
    ExtractorConfig,
    FaceMetrics,
    FaceSelection,
    FrameMetricsExtractor,
)
from .session import SessionFaceSummary, SessionMetricsAggregator, summarize_session
from .config import Settings

__all__ = [
    # Geometry & confidence
    "LandmarkPoint",
    "HeadPosition",
    "ReferenceFrame",
    "centroid",
    "eye_line_angle",
    "eye_contact",
    "head_position",
    "aggregate_confidence",
    # Expressions
    "EXPRESSION_LABELS",
    "ExpressionScores",
    "dominant_expression",
    # Detection
    "DetectorOptions",
    "FaceDetector",
    "RawDetection",
    "ModelLoader",
    "ModelStage",
    "manifest_stages",
    # Frame / session
    "ExtractorConfig",
    "FaceMetrics",
    "FaceSelection",
    "FrameMetricsExtractor",
    "SessionFaceSummary",
    "SessionMetricsAggregator",
    "summarize_session",
    # Config & errors
    "Settings",
    "FaceMetricsError",
    "InsufficientLandmarksError",
    "ModelLoadError",
    "CameraAccessError",
]
