"""
Detector Capability
===================
The face detector itself lives outside this package (the browser front-end
runs face-api.js; a Python deployment plugs in whatever it
likes).  This module fixes the contract between that detector and the
metrics core:

  - ``RawDetection``  explicit tagged structure for one detected face
  - ``FaceDetector``  async capability returning zero or more detections
  - ``ModelLoader``   three-stage readiness signal (33 / 66 / 100)
"""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from .exceptions import ModelLoadError
from .expressions import ExpressionScores
from .landmark_geometry import LandmarkPoint

logger = logging.getLogger(__name__)


# ── 68-point landmark convention (face-api.js / dlib) ───────────────
LEFT_EYE_SLICE = slice(36, 42)
RIGHT_EYE_SLICE = slice(42, 48)
FACE_API_LANDMARK_COUNT = 68

# Loaded in this order; progress is reported after each one.
MODEL_ARTIFACTS: Tuple[str, ...] = (
    "tiny_face_detector",
    "face_expression",
    "face_landmark_68",
)


@dataclass(frozen=True)
class DetectorOptions:
    """Options handed to the detector on every call."""

    input_size: int = 224
    score_threshold: float = 0.5


@dataclass(frozen=True)
class RawDetection:
    """One face as reported by a detector, before any derivation."""

    score: float
    landmarks: Tuple[LandmarkPoint, ...]
    left_eye: Tuple[LandmarkPoint, ...]
    right_eye: Tuple[LandmarkPoint, ...]
    expressions: ExpressionScores

    @classmethod
    def from_face_api(
        cls,
        score: float,
        positions: Sequence[Any],
        expressions: Mapping[str, float],
    ) -> "RawDetection":
        """Build a detection from a 68-point landmark list."""
        points = tuple(LandmarkPoint.from_any(p) for p in positions)
        if len(points) != FACE_API_LANDMARK_COUNT:
            raise ValueError(
                f"Expected {FACE_API_LANDMARK_COUNT} landmark points, got {len(points)}"
            )
        return cls(
            score=float(score),
            landmarks=points,
            left_eye=points[LEFT_EYE_SLICE],
            right_eye=points[RIGHT_EYE_SLICE],
            expressions=ExpressionScores(expressions),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawDetection":
        """Parse the JSON shape used by the replay files and the HTTP service.

        Either explicit ``left_eye`` / ``right_eye`` lists are given, or the
        eyes are cut out of a 68-point ``landmarks`` list.
        """
        if "left_eye" not in data and "right_eye" not in data:
            return cls.from_face_api(data["score"], data["landmarks"], data.get("expressions", {}))
        return cls(
            score=float(data["score"]),
            landmarks=tuple(LandmarkPoint.from_any(p) for p in data["landmarks"]),
            left_eye=tuple(LandmarkPoint.from_any(p) for p in data.get("left_eye", ())),
            right_eye=tuple(LandmarkPoint.from_any(p) for p in data.get("right_eye", ())),
            expressions=ExpressionScores(data.get("expressions", {})),
        )


class FaceDetector(Protocol):
    """Anything that can find faces, landmarks and expressions in a frame."""

    async def detect_faces(
        self, frame: Any, options: DetectorOptions
    ) -> Sequence[RawDetection]:
        ...


# ── Model readiness ─────────────────────────────────────────────────

@dataclass
class ModelStage:
    name: str
    load: Callable[[], None]


@dataclass
class ModelLoader:
    """Loads model artifacts one by one and exposes progress for polling.

    A failing stage leaves a persistent ``error``; there is no retry.
    """

    stages: List[ModelStage]
    progress: int = field(init=False, default=0)
    is_ready: bool = field(init=False, default=False)
    error: Optional[str] = field(init=False, default=None)

    def load(self) -> bool:
        self.progress = 0
        total = len(self.stages)
        for index, stage in enumerate(self.stages, start=1):
            try:
                stage.load()
            except Exception as e:
                self.error = f"Failed to load face detection model '{stage.name}': {e}"
                logger.error(self.error)
                return False
            self.progress = int(100 * index / total) if total else 100
            logger.info(f"Loaded model '{stage.name}' ({self.progress}%)")

        self.progress = 100
        self.is_ready = True
        self.error = None
        return True

    def require_ready(self) -> None:
        if not self.is_ready:
            raise ModelLoadError(self.error or "Face detection models not loaded yet")

    def status(self) -> Dict[str, Any]:
        return {"progress": self.progress, "ready": self.is_ready, "error": self.error}


def manifest_stages(
    models_dir: pathlib.Path,
    load_artifact: Optional[Callable[[pathlib.Path], None]] = None,
) -> List[ModelStage]:
    """One stage per artifact in ``MODEL_ARTIFACTS``.

    Each stage checks the weights manifest exists and then hands its path
    to ``load_artifact`` when given.
    """

    def _stage(name: str) -> ModelStage:
        manifest = models_dir / f"{name}_model-weights_manifest.json"

        def _load() -> None:
            if not manifest.exists():
                raise FileNotFoundError(f"Model manifest not found at {manifest}")
            if load_artifact is not None:
                load_artifact(manifest)

        return ModelStage(name=name, load=_load)

    return [_stage(name) for name in MODEL_ARTIFACTS]
