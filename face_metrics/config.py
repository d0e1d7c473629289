"""
Face Metrics Configuration
==========================
Centralized configuration with environment variable overrides.
Thresholds, capture limits and service settings live here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from .detection import DetectorOptions
from .frame_extractor import DEFAULT_CONFIDENCE_GATE, ExtractorConfig, FaceSelection
from .landmark_geometry import ReferenceFrame


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    """Tuning knobs for extraction, capture and the HTTP service."""

    # Extraction
    confidence_gate: float = DEFAULT_CONFIDENCE_GATE   # accept only above this
    face_selection: FaceSelection = FaceSelection.FIRST
    reference_width: float = 640.0                     # fallback when capture size unknown
    reference_height: float = 480.0
    detector_input_size: int = 224
    detector_score_threshold: float = 0.5

    # Capture
    max_fps: float = 10.0                              # detection passes per second
    camera_index: int = 0
    capture_width: int = 320
    capture_height: int = 240
    capture_fps: int = 15
    models_dir: Path = Path("public/models")

    # Service
    session_ttl_minutes: int = 60
    cors_origins: Tuple[str, ...] = ("*",)
    log_level: str = "INFO"

    # Murf text-to-speech
    murf_api_key: Optional[str] = None
    murf_base_url: str = "https://api.murf.ai/v1"
    murf_timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        load_dotenv(dotenv_path=env_file)
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            confidence_gate=_env_float("FACE_METRICS_CONFIDENCE_GATE", DEFAULT_CONFIDENCE_GATE),
            face_selection=FaceSelection(os.getenv("FACE_METRICS_FACE_SELECTION", "first")),
            reference_width=_env_float("FACE_METRICS_REFERENCE_WIDTH", 640.0),
            reference_height=_env_float("FACE_METRICS_REFERENCE_HEIGHT", 480.0),
            detector_input_size=_env_int("FACE_METRICS_DETECTOR_INPUT_SIZE", 224),
            detector_score_threshold=_env_float("FACE_METRICS_DETECTOR_SCORE_THRESHOLD", 0.5),
            max_fps=_env_float("FACE_METRICS_MAX_FPS", 10.0),
            camera_index=_env_int("FACE_METRICS_CAMERA_INDEX", 0),
            capture_width=_env_int("FACE_METRICS_CAPTURE_WIDTH", 320),
            capture_height=_env_int("FACE_METRICS_CAPTURE_HEIGHT", 240),
            capture_fps=_env_int("FACE_METRICS_CAPTURE_FPS", 15),
            models_dir=Path(os.getenv("FACE_METRICS_MODELS_DIR", "public/models")),
            session_ttl_minutes=_env_int("ANALYSIS_SESSION_TTL_MINUTES", 60),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            murf_api_key=os.getenv("MURF_API_KEY") or None,
            murf_base_url=os.getenv("MURF_BASE_URL", "https://api.murf.ai/v1"),
            murf_timeout_seconds=_env_float("MURF_TIMEOUT_SECONDS", 30.0),
        )

    def extractor_config(self) -> ExtractorConfig:
        return ExtractorConfig(
            confidence_gate=self.confidence_gate,
            face_selection=self.face_selection,
            reference_frame=ReferenceFrame(self.reference_width, self.reference_height),
            detector_options=DetectorOptions(
                input_size=self.detector_input_size,
                score_threshold=self.detector_score_threshold,
            ),
        )
