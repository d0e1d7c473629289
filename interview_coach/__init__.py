"""Interview coach HTTP service: face metrics sessions and interviewer TTS."""
