"""
Facial Analysis Service
=======================
REST endpoints that turn the browser's per-frame face detections into
interview face metrics and an end-of-session summary.

Architecture
------------
Browser (face-api.js, ~10 fps) ──(raw detections JSON)──►  POST /analysis/analyze-frame
                               ◄── JSON { accepted, metrics }

Each interview session gets its **own** extractor + aggregator so that the
rolling summary survives between requests.  Sessions auto-expire after
``session_ttl_minutes`` of inactivity.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, model_validator

from face_metrics import (
    FaceMetrics,
    FrameMetricsExtractor,
    RawDetection,
    ReferenceFrame,
    SessionMetricsAggregator,
    Settings,
)

from .settings import get_settings

logger = logging.getLogger(__name__)

# ── Session store ──────────────────────────────────────────────────
_sessions: Dict[str, "_AnalysisSession"] = {}
_sessions_lock = threading.Lock()


class _AnalysisSession:
    """Per-interview session holding the extractor and the running fold."""

    def __init__(
        self,
        session_id: str,
        settings: Settings,
        frame: Optional[ReferenceFrame] = None,
    ):
        self.session_id = session_id
        self.created_at = time.time()
        self.last_access = time.time()
        self.frame = frame
        self.extractor = FrameMetricsExtractor(config=settings.extractor_config())
        self.aggregator = SessionMetricsAggregator()
        self.frame_count = 0
        self._lock = threading.Lock()

    def process_detections(
        self,
        detections: List[RawDetection],
        frame: Optional[ReferenceFrame] = None,
    ) -> Optional[FaceMetrics]:
        with self._lock:
            self.last_access = time.time()
            self.frame_count += 1
            metrics = self.extractor.record(detections, frame or self.frame)
            if metrics is not None:
                self.aggregator.add(metrics)
            return metrics


def _cleanup_expired(ttl_minutes: int) -> None:
    """Remove sessions idle for > TTL."""
    cutoff = time.time() - ttl_minutes * 60
    with _sessions_lock:
        expired = [sid for sid, s in _sessions.items() if s.last_access < cutoff]
        for sid in expired:
            del _sessions[sid]
            logger.info(f"Expired analysis session {sid}")


def _get_or_create_session(
    session_id: str,
    settings: Settings,
    frame: Optional[ReferenceFrame] = None,
) -> _AnalysisSession:
    _cleanup_expired(settings.session_ttl_minutes)
    with _sessions_lock:
        if session_id not in _sessions:
            _sessions[session_id] = _AnalysisSession(session_id, settings, frame)
            logger.info(f"Created analysis session {session_id}")
        elif frame is not None:
            _sessions[session_id].frame = frame
        return _sessions[session_id]


def _reference_frame(width: Optional[float], height: Optional[float]) -> Optional[ReferenceFrame]:
    if width and height:
        return ReferenceFrame(width, height)
    return None


# ── Pydantic models ───────────────────────────────────────────────
class LandmarkPointModel(BaseModel):
    x: float
    y: float


EyePoints = Annotated[List[LandmarkPointModel], Field(min_length=1)]


class ExpressionScoresModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    neutral: float = Field(default=0.0, ge=0.0, le=1.0)
    happy: float = Field(default=0.0, ge=0.0, le=1.0)
    sad: float = Field(default=0.0, ge=0.0, le=1.0)
    angry: float = Field(default=0.0, ge=0.0, le=1.0)
    fearful: float = Field(default=0.0, ge=0.0, le=1.0)
    disgusted: float = Field(default=0.0, ge=0.0, le=1.0)
    surprised: float = Field(default=0.0, ge=0.0, le=1.0)


class RawDetectionModel(BaseModel):
    score: float = Field(..., ge=0.0, le=1.0, description="Face detector score")
    landmarks: List[LandmarkPointModel] = Field(..., min_length=1)
    left_eye: Optional[EyePoints] = None
    right_eye: Optional[EyePoints] = None
    expressions: ExpressionScoresModel = Field(default_factory=ExpressionScoresModel)

    @model_validator(mode="after")
    def _check_eyes(self) -> "RawDetectionModel":
        if (self.left_eye is None) != (self.right_eye is None):
            raise ValueError("left_eye and right_eye must be given together")
        if self.left_eye is None and len(self.landmarks) != 68:
            raise ValueError("without explicit eyes, landmarks must hold 68 points")
        return self

    def to_raw_detection(self) -> RawDetection:
        return RawDetection.from_dict(self.model_dump(exclude_none=True))


class FrameSizeModel(BaseModel):
    frame_width: Optional[float] = Field(default=None, gt=0, description="Capture width in px")
    frame_height: Optional[float] = Field(default=None, gt=0, description="Capture height in px")

    @model_validator(mode="after")
    def _check_frame_size(self):
        if (self.frame_width is None) != (self.frame_height is None):
            raise ValueError("frame_width and frame_height must be given together")
        return self


class StartAnalysisRequest(FrameSizeModel):
    session_id: str = Field(default="", description="Interview session ID")


class AnalyzeFrameRequest(FrameSizeModel):
    session_id: str = Field(default="", description="Interview session ID for state tracking")
    detections: List[RawDetectionModel] = Field(default_factory=list)


class AnalyzeFrameResponse(BaseModel):
    success: bool
    session_id: str
    frame_number: int = 0
    accepted: bool = False
    metrics: Optional[Dict[str, Any]] = None


class EndAnalysisRequest(BaseModel):
    session_id: str


# ── Router ─────────────────────────────────────────────────────────
router = APIRouter(prefix="/analysis", tags=["facial-analysis"])


@router.post("/start-session")
async def start_analysis_session(
    req: StartAnalysisRequest, settings: Settings = Depends(get_settings)
):
    """Open an analysis session, optionally pinning the capture resolution."""
    sid = req.session_id or str(uuid.uuid4())
    _get_or_create_session(sid, settings, _reference_frame(req.frame_width, req.frame_height))
    return {
        "success": True,
        "session_id": sid,
        "message": "Analysis session started",
    }


@router.post("/analyze-frame", response_model=AnalyzeFrameResponse)
async def analyze_frame(req: AnalyzeFrameRequest, settings: Settings = Depends(get_settings)):
    """
    Derive face metrics for a single frame's detections.

    An empty ``detections`` list or a low-confidence face is a normal
    outcome (``accepted: false``), not an error.
    """
    sid = req.session_id or str(uuid.uuid4())
    session = _get_or_create_session(sid, settings)

    try:
        detections = [d.to_raw_detection() for d in req.detections]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid detection: {e}")

    metrics = session.process_detections(
        detections, _reference_frame(req.frame_width, req.frame_height)
    )
    return AnalyzeFrameResponse(
        success=True,
        session_id=sid,
        frame_number=session.frame_count,
        accepted=metrics is not None,
        metrics=metrics.to_dict() if metrics is not None else None,
    )


@router.get("/sessions/{session_id}/summary")
async def session_summary(session_id: str):
    """Rolling summary of a session that is still running."""
    with _sessions_lock:
        session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {
        "success": True,
        "session_id": session_id,
        "summary": session.aggregator.summary().to_dict(),
    }


@router.post("/end-session")
async def end_analysis_session(req: EndAnalysisRequest):
    """
    End analysis session and return the aggregate face summary.

    ``averageConfidence`` / ``eyeContactPercentage`` are null when no frame
    was accepted during the session.
    """
    with _sessions_lock:
        session = _sessions.pop(req.session_id, None)

    if session is None:
        return {"success": False, "message": "Session not found"}

    summary = session.aggregator.summary()
    logger.info(
        f"Ended analysis session {req.session_id}: "
        f"{summary.frame_count}/{session.frame_count} frames accepted"
    )
    return {
        "success": True,
        "session_id": req.session_id,
        "summary": summary.to_dict(),
        "report": summary.report(),
        "frames": session.extractor.stats(),
    }


@router.get("/sessions")
async def list_sessions():
    """List active analysis sessions (debug endpoint)."""
    with _sessions_lock:
        return {
            "active_sessions": [
                {
                    "session_id": s.session_id,
                    "frame_count": s.frame_count,
                    "accepted_frames": s.aggregator.frame_count,
                    "created_at": datetime.fromtimestamp(s.created_at).isoformat(),
                    "last_access": datetime.fromtimestamp(s.last_access).isoformat(),
                }
                for s in _sessions.values()
            ]
        }
