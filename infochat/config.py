from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

DATA_DIR: Path
STORAGE: str
STORAGE_KEY: str
HISTORY_LIMIT: int
PREVIEW_LENGTH: int
TYPING_MIN_MS: int
TYPING_MAX_MS: int
WEBHOOK_URL: Optional[str]
PROVIDER_TIMEOUT: Optional[float]
PROBE_URL: str
LOG_LEVEL: str


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)).strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)).strip())
    except ValueError:
        return default


def reload_from_environment() -> None:
    """Refresh configuration values from the current environment."""

    global DATA_DIR, STORAGE, STORAGE_KEY, HISTORY_LIMIT, PREVIEW_LENGTH
    global TYPING_MIN_MS, TYPING_MAX_MS, WEBHOOK_URL, PROVIDER_TIMEOUT, PROBE_URL, LOG_LEVEL

    DATA_DIR = Path(os.getenv("INFOCHAT_DATA_DIR", str(Path.home() / ".infochat"))).expanduser()
    STORAGE = os.getenv("INFOCHAT_STORAGE", "fs").strip().lower() or "fs"
    STORAGE_KEY = os.getenv("INFOCHAT_STORAGE_KEY", "infographic-chat-history").strip() or "infographic-chat-history"
    HISTORY_LIMIT = _env_int("INFOCHAT_HISTORY_LIMIT", 20)
    PREVIEW_LENGTH = _env_int("INFOCHAT_PREVIEW_LENGTH", 50)
    TYPING_MIN_MS = _env_int("INFOCHAT_TYPING_MIN_MS", 1000)
    TYPING_MAX_MS = _env_int("INFOCHAT_TYPING_MAX_MS", 2000)
    WEBHOOK_URL = (os.getenv("INFOCHAT_WEBHOOK_URL") or "").strip() or None
    timeout = _env_float("INFOCHAT_PROVIDER_TIMEOUT", 30.0)
    PROVIDER_TIMEOUT = timeout if timeout > 0 else None
    PROBE_URL = (os.getenv("INFOCHAT_PROBE_URL") or "").strip() or WEBHOOK_URL or "https://www.google.com"
    LOG_LEVEL = os.getenv("INFOCHAT_LOG_LEVEL", "INFO").strip().upper() or "INFO"


reload_from_environment()


__all__ = [
    "DATA_DIR",
    "HISTORY_LIMIT",
    "LOG_LEVEL",
    "PREVIEW_LENGTH",
    "PROBE_URL",
    "PROVIDER_TIMEOUT",
    "STORAGE",
    "STORAGE_KEY",
    "TYPING_MAX_MS",
    "TYPING_MIN_MS",
    "WEBHOOK_URL",
    "reload_from_environment",
]
