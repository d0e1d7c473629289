from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from face_metrics.config import Settings

# repo-level .env, one directory above the package
ENV_PATH = Path(__file__).resolve().parent.parent / ".env"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env(ENV_PATH if ENV_PATH.exists() else None)
