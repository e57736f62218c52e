"""Environment-backed runtime settings."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional


DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_REQUEST_TIMEOUT = 120.0
MODEL_ENV_PREFIX = "VIBECODER_MODEL_"


def mode_model_env(mode: str) -> str:
    """Env var holding a per-mode model, e.g. my-mode -> VIBECODER_MODEL_MY_MODE."""
    return MODEL_ENV_PREFIX + "_".join(re.findall(r"[A-Za-z0-9]+", mode)).upper()


def model_for_mode(mode: str, default_model: str) -> str:
    return os.environ.get(mode_model_env(mode), "").strip() or default_model


def _to_positive_float(value: str | None, default: float) -> float:
    try:
        parsed = float(value) if value is not None else default
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _to_optional_int(value: str | None) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        parsed = int(value)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


@dataclass(frozen=True)
class AgentSettings:
    model: str
    request_timeout: float
    capability_file: Optional[str] = None
    history_turns: Optional[int] = None
    base_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AgentSettings":
        return cls(
            model=(os.getenv("VIBECODER_MODEL", "") or "").strip() or DEFAULT_MODEL,
            request_timeout=_to_positive_float(
                os.getenv("VIBECODER_REQUEST_TIMEOUT"), DEFAULT_REQUEST_TIMEOUT
            ),
            capability_file=(os.getenv("VIBECODER_CAPABILITIES") or None),
            history_turns=_to_optional_int(os.getenv("VIBECODER_HISTORY_TURNS")),
            base_url=(os.getenv("OPENAI_BASE_URL") or None),
        )


def has_api_key() -> bool:
    return bool(os.getenv("OPENAI_API_KEY"))
