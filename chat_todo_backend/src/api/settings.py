from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - HISTORY_BACKEND: 'memory' (default) or 'sqlite'
    - HISTORY_DB_PATH: path to sqlite db file. Default './data/histories.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - OPENAI_API_KEY: credential for the hosted model (optional; /check-open-ai-key reports it)
    - OPENAI_BASE_URL: OpenAI-compatible API root. Default 'https://api.openai.com/v1'
    - OPENAI_MODEL: model used for extraction and chat. Default 'gpt-4o-2024-11-20'
    - LLM_TIMEOUT_SECONDS: timeout for a model call. Default 30
    - LLM_MAX_OUTPUT_TOKENS: output token cap for extraction calls. Default 1000
    - LOG_LEVEL: root log level. Default 'INFO'
    """

    history_backend: str
    history_db_path: str
    cors_allow_origins: List[str]
    openai_api_key: Optional[str]
    openai_base_url: str
    openai_model: str
    llm_timeout_seconds: float
    llm_max_output_tokens: int
    log_level: str


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_float(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("HISTORY_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    api_key = os.getenv("OPENAI_API_KEY", "").strip() or None
    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()

    return Settings(
        history_backend=backend,
        history_db_path=_get_env("HISTORY_DB_PATH", "./data/histories.db").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        openai_api_key=api_key,
        openai_base_url=_get_env("OPENAI_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/"),
        openai_model=_get_env("OPENAI_MODEL", "gpt-4o-2024-11-20").strip(),
        llm_timeout_seconds=_parse_float(_get_env("LLM_TIMEOUT_SECONDS", "30"), 30.0),
        llm_max_output_tokens=_parse_int(_get_env("LLM_MAX_OUTPUT_TOKENS", "1000"), 1000),
        log_level=log_level,
    )
