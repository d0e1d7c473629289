"""Error types raised by the face-metrics core."""

from __future__ import annotations


class FaceMetricsError(Exception):
    """Base class for every error raised by ``face_metrics``."""


class InsufficientLandmarksError(FaceMetricsError, ValueError):
    """A landmark set was empty where at least one point is required."""


class ModelLoadError(FaceMetricsError):
    """A detection model artifact could not be loaded.

    Fatal to the face-metrics feature for the rest of the session only.
    """


class CameraAccessError(FaceMetricsError):
    """The video capture device could not be opened."""
