"""State store backend selection from configuration."""
from __future__ import annotations

import logging
from typing import Optional

from card_engines.config import runtime_config
from card_engines.state_store.base import StateStore
from card_engines.state_store.filesystem import FileSystemStateStore
from card_engines.state_store.in_memory import InMemoryStateStore
from card_engines.state_store.redis_store import RedisStateStore

logger = logging.getLogger(__name__)


def create_state_store(backend: Optional[str] = None) -> StateStore:
    """Build the configured backend (``CARD_STATE_BACKEND``: memory | filesystem | redis)."""
    backend_type = (backend or runtime_config.get_state_backend()).lower()

    if backend_type == "memory":
        logger.info("Using in-memory card state (state will not survive restarts)")
        return InMemoryStateStore()
    elif backend_type == "filesystem":
        base_dir = runtime_config.get_state_dir()
        logger.info(f"Using filesystem card state at {base_dir}")
        return FileSystemStateStore(base_dir=base_dir)
    elif backend_type == "redis":
        url = runtime_config.get_redis_url()
        if not url:
            raise RuntimeError("CARD_STATE_BACKEND=redis requires REDIS_URL")
        logger.info("Using Redis for card state persistence")
        return RedisStateStore(url=url, ttl_seconds=runtime_config.get_state_ttl_seconds())
    else:
        raise RuntimeError(
            f"Unsupported CARD_STATE_BACKEND='{backend_type}'. "
            f"Use 'memory', 'filesystem', or 'redis'."
        )
