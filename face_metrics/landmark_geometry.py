"""
Landmark Geometry
=================
Pure functions that turn raw facial landmark points into the two geometric
signals used by the interview coach:

  - eye contact: is the line through both eye centroids roughly horizontal?
  - head position: where is the face centroid inside the capture frame,
    normalised to [-1, 1] on both axes?

The eye-line test is a cheap proxy for a forward-facing, untilted head.
It is not a gaze estimator.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from .exceptions import InsufficientLandmarksError

EYE_CONTACT_MAX_ANGLE = 20.0  # degrees


@dataclass(frozen=True)
class LandmarkPoint:
    """One detected keypoint, in source-image pixel coordinates."""

    x: float
    y: float

    @classmethod
    def from_any(cls, point) -> "LandmarkPoint":
        """Accept a ``LandmarkPoint``, an ``{x, y}`` mapping or an (x, y) pair."""
        if isinstance(point, LandmarkPoint):
            return point
        if isinstance(point, dict):
            return cls(float(point["x"]), float(point["y"]))
        x, y = point[0], point[1]
        return cls(float(x), float(y))


@dataclass(frozen=True)
class ReferenceFrame:
    """Pixel size of the frame the landmark coordinates were measured in."""

    width: float = 640.0
    height: float = 480.0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Reference frame must have positive size, got {self.width}x{self.height}"
            )


DEFAULT_REFERENCE_FRAME = ReferenceFrame()


@dataclass(frozen=True)
class HeadPosition:
    """Face centroid normalised to [-1, 1]; (0, 0) is the frame centre."""

    x: float
    y: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


def _as_array(points: Iterable[LandmarkPoint], what: str) -> np.ndarray:
    coords = [(p.x, p.y) for p in points]
    if not coords:
        raise InsufficientLandmarksError(f"insufficient landmarks: {what} is empty")
    return np.asarray(coords, dtype=np.float64)


def centroid(points: Sequence[LandmarkPoint], what: str = "landmark set") -> LandmarkPoint:
    mean = _as_array(points, what).mean(axis=0)
    return LandmarkPoint(float(mean[0]), float(mean[1]))


def eye_line_angle(
    left_eye: Sequence[LandmarkPoint],
    right_eye: Sequence[LandmarkPoint],
) -> float:
    """Angle in degrees of the left→right eye-centroid line against horizontal."""
    left = centroid(left_eye, "left eye")
    right = centroid(right_eye, "right eye")
    return math.degrees(math.atan2(right.y - left.y, right.x - left.x))


def eye_contact(
    left_eye: Sequence[LandmarkPoint],
    right_eye: Sequence[LandmarkPoint],
    max_angle: float = EYE_CONTACT_MAX_ANGLE,
) -> bool:
    """True when the eye line is within ``max_angle`` degrees of horizontal."""
    return abs(eye_line_angle(left_eye, right_eye)) < max_angle


def head_position(
    landmarks: Sequence[LandmarkPoint],
    frame: ReferenceFrame = DEFAULT_REFERENCE_FRAME,
) -> HeadPosition:
    """Face centroid normalised to [-1, 1] against ``frame``.

    ``frame`` must be the resolution the landmarks were produced in; a
    mismatch skews the result silently rather than raising.
    """
    center = centroid(landmarks, "face landmarks")
    x = (center.x / frame.width) * 2 - 1
    y = (center.y / frame.height) * 2 - 1
    return HeadPosition(x, y)
