"""
Interview Coach Service - Main FastAPI Application
Port: 8002

Endpoints:
  /analysis/*   per-frame face metrics + session summary
  POST /tts/speech   interviewer voice via Murf
  GET  /health
"""

import logging
import os
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .facial_analysis_service import router as analysis_router
from .murf import MurfAPIError, MurfService
from .settings import get_settings

logger = logging.getLogger(__name__)


# Pydantic Models
class SpeechRequest(BaseModel):
    text: str = Field(..., min_length=1)
    character_id: str = "jane"


class SpeechResponse(BaseModel):
    audio_url: str


class HealthResponse(BaseModel):
    status: str
    service: str
    tts: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and the TTS client."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if settings.murf_api_key:
        app.state.murf = MurfService(
            settings.murf_api_key,
            base_url=settings.murf_base_url,
            timeout=settings.murf_timeout_seconds,
        )
    else:
        logger.warning("MURF_API_KEY not set, TTS unavailable")
        app.state.murf = None
    yield


app = FastAPI(
    title="Interview Coach",
    description="Face metrics and interviewer voice for mock interviews",
    version="0.3.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analysis_router)


@app.get("/health", response_model=HealthResponse)
async def health(request: Request):
    murf = getattr(request.app.state, "murf", None)
    return HealthResponse(
        status="healthy",
        service="interview-coach",
        tts="configured" if murf is not None else "not_configured",
    )


@app.post("/tts/speech", response_model=SpeechResponse)
async def generate_speech(req: SpeechRequest, request: Request):
    """Render interviewer text in the character's voice."""
    murf = getattr(request.app.state, "murf", None)
    if murf is None:
        raise HTTPException(status_code=503, detail="Text-to-speech is not configured")
    try:
        audio_url = await murf.generate_speech(req.text, req.character_id)
    except (MurfAPIError, httpx.HTTPError) as e:
        logger.error(f"Speech generation failed: {e}")
        raise HTTPException(status_code=502, detail="Speech generation failed")
    return SpeechResponse(audio_url=audio_url)


def run() -> None:
    uvicorn.run(
        "interview_coach.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8002")),
    )


if __name__ == "__main__":
    run()
