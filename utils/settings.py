"""Runtime configuration read from environment variables.

Values can also come from a `.env` file loaded by `main.py`. Only the
OpenAI key is optional at startup; without it every inference call fails
with a missing-credential error instead of the app refusing to start.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from services.capture.capture_queues import DEFAULT_SECONDARY_CAPACITY
from services.inference.model_chain import (
    DEFAULT_MODEL,
    DEFAULT_TRANSCRIPTION_MODEL,
    MODEL_FALLBACK_ORDER,
    TRANSCRIPTION_MODEL_ORDER,
)
from services.memory.conversation_memory import DEFAULT_CHAR_LIMIT, DEFAULT_WINDOW


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} must be an integer.") from exc
    if value < minimum:
        raise RuntimeError(f"{name}={raw!r} must be at least {minimum}.")
    return value


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Configuration consumed by the pipeline and its collaborators."""

    openai_api_key: Optional[str] = None
    model_order: List[str] = field(default_factory=lambda: list(MODEL_FALLBACK_ORDER))
    preferred_model: str = DEFAULT_MODEL
    transcription_model_order: List[str] = field(default_factory=lambda: list(TRANSCRIPTION_MODEL_ORDER))
    preferred_transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    response_language: str = "English"
    code_language: str = "python"
    retry_base_delay_ms: int = 2000
    retry_max_delay_ms: int = 30000
    api_timeout_ms: int = 60000
    conversation_window: int = DEFAULT_WINDOW
    context_char_limit: int = DEFAULT_CHAR_LIMIT
    secondary_capacity: int = DEFAULT_SECONDARY_CAPACITY
    capture_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "problem_capture")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment.

        Raises:
            RuntimeError: If a numeric variable is malformed or out of range.
        """
        defaults = cls()
        capture_dir = os.getenv("CAPTURE_DIR")
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            model_order=_env_list("OPENAI_MODEL_ORDER", defaults.model_order),
            preferred_model=os.getenv("OPENAI_MODEL", defaults.preferred_model),
            transcription_model_order=_env_list("OPENAI_TRANSCRIBE_MODEL_ORDER", defaults.transcription_model_order),
            preferred_transcription_model=os.getenv("OPENAI_TRANSCRIBE_MODEL", defaults.preferred_transcription_model),
            response_language=os.getenv("OPENAI_RESPONSE_LANGUAGE", defaults.response_language),
            code_language=os.getenv("CODE_LANGUAGE", defaults.code_language),
            retry_base_delay_ms=_env_int("RETRY_BASE_DELAY_MS", defaults.retry_base_delay_ms),
            retry_max_delay_ms=_env_int("RETRY_MAX_DELAY_MS", defaults.retry_max_delay_ms),
            api_timeout_ms=_env_int("API_TIMEOUT_MS", defaults.api_timeout_ms, minimum=1),
            conversation_window=_env_int("CONVERSATION_WINDOW", defaults.conversation_window, minimum=1),
            context_char_limit=_env_int("CONTEXT_CHAR_LIMIT", defaults.context_char_limit, minimum=1),
            secondary_capacity=_env_int("SECONDARY_QUEUE_CAPACITY", defaults.secondary_capacity, minimum=1),
            capture_dir=Path(capture_dir).expanduser() if capture_dir else defaults.capture_dir,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )

    @property
    def retry_base_delay(self) -> float:
        return self.retry_base_delay_ms / 1000.0

    @property
    def retry_max_delay(self) -> float:
        return self.retry_max_delay_ms / 1000.0

    @property
    def api_timeout(self) -> float:
        return self.api_timeout_ms / 1000.0
