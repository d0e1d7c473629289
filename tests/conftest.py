"""Shared fixtures for face-metrics tests.

All detections are synthetic, no detector models needed.
"""

import pytest

from face_metrics import ExpressionScores, FaceMetrics, HeadPosition, RawDetection

from helpers import eye_at, eye_json


@pytest.fixture
def make_detection():
    """Factory for RawDetection with eyes at the given centres."""
    def _make(
        score: float = 0.9,
        expressions=None,
        left=(280.0, 220.0),
        right=(360.0, 220.0),
        landmarks=None,
    ) -> RawDetection:
        left_eye = eye_at(*left)
        right_eye = eye_at(*right)
        points = tuple(landmarks) if landmarks is not None else left_eye + right_eye
        return RawDetection(
            score=score,
            landmarks=points,
            left_eye=left_eye,
            right_eye=right_eye,
            expressions=ExpressionScores(expressions or {"neutral": score}),
        )
    return _make


@pytest.fixture
def make_metrics():
    """Factory for FaceMetrics without going through the extractor."""
    def _make(confidence: float = 0.8, eye_contact: bool = True, expressions=None) -> FaceMetrics:
        return FaceMetrics(
            expressions=ExpressionScores(expressions or {"neutral": 0.9}),
            eye_contact=eye_contact,
            head_position=HeadPosition(0.0, 0.0),
            confidence=confidence,
        )
    return _make


@pytest.fixture
def detection_json():
    """Factory for the JSON shape accepted by the service and replay files."""
    def _make(score=0.9, expressions=None, left=(280.0, 220.0), right=(360.0, 220.0)):
        left_eye = eye_json(*left)
        right_eye = eye_json(*right)
        return {
            "score": score,
            "landmarks": left_eye + right_eye,
            "left_eye": left_eye,
            "right_eye": right_eye,
            "expressions": expressions or {"neutral": score},
        }
    return _make
