from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from mirror_gateway.core.types import DEFAULT_MAX_ATTEMPTS

DEFAULT_GEMINI_MODEL = "gemini-3-flash-preview"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True, slots=True)
class Settings:
    gemini_api_key: str | None = None
    gemini_model_text: str = DEFAULT_GEMINI_MODEL
    gemini_model_multi: str = DEFAULT_GEMINI_MODEL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    fetch_timeout: float = 15.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        load_dotenv()
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model_text=os.getenv("GEMINI_MODEL_TEXT", DEFAULT_GEMINI_MODEL),
            gemini_model_multi=os.getenv("GEMINI_MODEL_MULTI", DEFAULT_GEMINI_MODEL),
            max_attempts=max(1, int(os.getenv("MIRROR_MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS)))),
            fetch_timeout=float(os.getenv("MIRROR_FETCH_TIMEOUT", "15.0")),
            log_level=os.getenv("MIRROR_LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("mirror_gateway").setLevel(level)
