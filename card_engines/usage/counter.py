"""Per-card usage counters.

One counter instance is created per process and passed to the adapter
explicitly; nothing reads it from module globals.
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Optional, Protocol

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from card_engines.config import runtime_config

logger = logging.getLogger(__name__)


class UsageCounter(Protocol):
    async def increment(self, card_name: str) -> int: ...

    async def get(self, card_name: str) -> int: ...

    async def snapshot(self) -> Dict[str, int]: ...


class InMemoryUsageCounter:
    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()

    async def increment(self, card_name: str) -> int:
        self._counts[card_name] += 1
        return self._counts[card_name]

    async def get(self, card_name: str) -> int:
        return self._counts.get(card_name, 0)

    async def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)


class RedisUsageCounter:
    """Counters kept in a single Redis hash so every process shares them."""

    def __init__(self, url: Optional[str] = None, client: Optional[Any] = None, hash_key: str = "card:usage") -> None:
        if client is None:
            if not url:
                raise RuntimeError("REDIS_URL is required for the redis usage counter")
            client = aioredis.from_url(url, decode_responses=True)
        self._client = client
        self._hash_key = hash_key

    async def increment(self, card_name: str) -> int:
        return int(await self._client.hincrby(self._hash_key, card_name, 1))

    async def get(self, card_name: str) -> int:
        value = await self._client.hget(self._hash_key, card_name)
        return int(value) if value is not None else 0

    async def snapshot(self) -> Dict[str, int]:
        raw = await self._client.hgetall(self._hash_key)
        return {name: int(count) for name, count in raw.items()}


def create_usage_counter(backend: Optional[str] = None) -> UsageCounter:
    backend_type = (backend or runtime_config.get_usage_backend()).lower()
    if backend_type == "memory":
        return InMemoryUsageCounter()
    if backend_type == "redis":
        return RedisUsageCounter(url=runtime_config.get_redis_url())
    raise RuntimeError(f"Unsupported CARD_USAGE_BACKEND='{backend_type}'. Use 'memory' or 'redis'.")


async def record_usage(counter: UsageCounter, card_name: str) -> Optional[int]:
    """Increment ``card_name``; counter failures are logged and never fail the call."""
    try:
        return await counter.increment(card_name)
    except (RedisError, OSError) as exc:
        logger.warning(f"Usage counter unavailable for card '{card_name}': {exc}")
        return None
