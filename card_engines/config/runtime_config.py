"""Runtime configuration helpers for card engines."""
from __future__ import annotations

import os
from typing import Optional

DEFAULT_STATE_TTL_SECONDS = 2_592_000  # 30 days
DEFAULT_INSTANCE_ID_LENGTH = 6


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got: {raw!r}") from exc


def get_base_url() -> str:
    return (_get_env("CARD_BASE_URL") or _get_env("BASE_URL") or "").rstrip("/")


def get_state_backend() -> str:
    return (_get_env("CARD_STATE_BACKEND") or "memory").lower()


def get_state_dir() -> str:
    return _get_env("CARD_STATE_DIR") or os.path.join(os.getcwd(), "var", "card_state")


def get_redis_url() -> Optional[str]:
    return _get_env("REDIS_URL")


def get_state_ttl_seconds() -> Optional[int]:
    ttl = _get_int("CARD_STATE_TTL_SECONDS", DEFAULT_STATE_TTL_SECONDS)
    return ttl if ttl > 0 else None


def get_instance_id_length() -> int:
    length = _get_int("CARD_INSTANCE_ID_LENGTH", DEFAULT_INSTANCE_ID_LENGTH)
    if not 1 <= length <= 64:
        raise ValueError(f"CARD_INSTANCE_ID_LENGTH must be between 1 and 64, got: {length}")
    return length


def get_usage_backend() -> str:
    return (_get_env("CARD_USAGE_BACKEND") or "memory").lower()


def get_image_renderer_url() -> Optional[str]:
    return _get_env("CARD_IMAGE_RENDERER_URL") or None


def get_image_renderer_timeout() -> float:
    raw = _get_env("CARD_IMAGE_RENDERER_TIMEOUT")
    return float(raw) if raw else 10.0


def get_log_level() -> str:
    return (_get_env("CARD_LOG_LEVEL") or "INFO").upper()
