"""Configuration loading for GhostLens.

Settings come from the environment, optionally seeded from `.env.local` or
`env.local` in the working directory. Every OpenRouter variable also accepts
the `VITE_`-prefixed spelling so existing env files keep working.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "google/gemini-2.5-flash-lite"
DEFAULT_API_URL = "https://openrouter.ai/api/v1/chat/completions"
LOCAL_ENV_FILES = (".env.local", "env.local")


def load_local_env(directory: Optional[str] = None) -> None:
    """Load local env files if present; real environment variables win."""
    base = Path(directory) if directory else Path.cwd()
    for name in LOCAL_ENV_FILES:
        env_path = base / name
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")


def _env(name: str, default: str = "") -> str:
    value = os.environ.get(name)
    if value is None:
        value = os.environ.get(f"VITE_{name}")
    if value is None:
        return default
    return value.strip()


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


@dataclass
class Settings:
    """Runtime settings for the assistant and its OpenRouter client."""

    api_key: str = ""
    model_name: str = DEFAULT_MODEL_NAME
    api_url: str = DEFAULT_API_URL
    app_title: str = "GhostLens"
    referer: str = "https://ghostlens.local"
    capture_timeout: float = 5.0
    request_timeout: float = 60.0
    speech_language: str = "en-US"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, directory: Optional[str] = None) -> "Settings":
        load_local_env(directory)
        return cls(
            api_key=_env("OPEN_ROUTER_API_KEY"),
            model_name=_env("MODEL_NAME") or DEFAULT_MODEL_NAME,
            api_url=_env("OPEN_ROUTER_API_URL") or DEFAULT_API_URL,
            capture_timeout=_env_float("GHOSTLENS_CAPTURE_TIMEOUT", 5.0),
            request_timeout=_env_float("GHOSTLENS_REQUEST_TIMEOUT", 60.0),
            speech_language=os.environ.get("GHOSTLENS_SPEECH_LANGUAGE", "en-US"),
            log_level=os.environ.get("GHOSTLENS_LOG_LEVEL", "INFO").upper(),
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)
