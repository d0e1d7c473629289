"""
Murf Text-to-Speech
===================
Turns interviewer replies into audio for the chat canvas.  Each interviewer
character has a fixed voice and a speed / pitch preset; the API returns a
URL to the rendered audio file.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

MURF_BASE_URL = "https://api.murf.ai/v1"

VOICE_MAP: Dict[str, str] = {
    "jane": "en-US-julia",
    "mike": "en-US-terrell",
    "sarah": "en-US-emma",
}
FALLBACK_VOICE_ID = "claire"

# (speed, pitch) per character
VOICE_PRESETS: Dict[str, Tuple[float, float]] = {
    "mike": (0.95, 0.95),
    "sarah": (1.05, 1.1),
}
DEFAULT_PRESET: Tuple[float, float] = (1.0, 1.0)


class MurfAPIError(RuntimeError):
    """Murf answered with a non-success status."""

    def __init__(self, status_code: int, reason: str, body: str = "") -> None:
        super().__init__(f"Murf API error: {status_code} {reason}\n{body}".rstrip())
        self.status_code = status_code
        self.body = body


class MurfService:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = MURF_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Murf API key is required")
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        logger.info(f"MurfService initialized with API key: {api_key[:5]}...")

    @staticmethod
    def voice_for(character_id: str) -> str:
        return VOICE_MAP.get(character_id, FALLBACK_VOICE_ID)

    @staticmethod
    def preset_for(character_id: str) -> Tuple[float, float]:
        return VOICE_PRESETS.get(character_id, DEFAULT_PRESET)

    def build_request(self, text: str, character_id: str = "jane") -> Dict[str, object]:
        speed, pitch = self.preset_for(character_id)
        return {
            "text": text,
            "voice_id": self.voice_for(character_id),
            "speed": speed,
            "pitch": pitch,
        }

    async def generate_speech(self, text: str, character_id: str = "jane") -> str:
        """Render ``text`` in the character's voice and return the audio URL."""
        body = self.build_request(text, character_id)
        url = f"{self.base_url}/speech/generate"
        logger.debug(f"Requesting speech: voice={body['voice_id']} chars={len(text)}")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(
                url,
                headers={
                    "Content-Type": "application/json",
                    "api-key": self._api_key,
                    "Accept": "application/json",
                },
                json=body,
            )

        if resp.status_code >= 400:
            logger.error(f"Murf API error response: {resp.status_code} {resp.text[:200]}")
            raise MurfAPIError(resp.status_code, resp.reason_phrase, resp.text)

        data = resp.json()
        audio_url = data.get("audioFile")
        if not audio_url:
            raise MurfAPIError(resp.status_code, "missing audioFile in response", resp.text)
        logger.info(f"Audio generated for character '{character_id}'")
        return audio_url
