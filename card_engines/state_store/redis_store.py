"""Redis-backed state store.

Documents are stored as JSON strings under the card key, with an optional TTL
(30 days unless configured otherwise). One client is shared by all requests;
redis-py's asyncio client pools connections, so overlapping operations are safe.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from card_engines.cards.errors import StateStoreError
from card_engines.cards.models import CardState

logger = logging.getLogger(__name__)


class RedisStateStore:
    def __init__(
        self,
        url: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        client: Optional[Any] = None,
        key_prefix: str = "",
    ) -> None:
        if client is None:
            if not url:
                raise RuntimeError("REDIS_URL is required for the redis state store")
            client = aioredis.from_url(url, decode_responses=True)
        self._client = client
        self._ttl_seconds = ttl_seconds
        self._prefix = key_prefix

    def _key(self, card_key: str) -> str:
        return f"{self._prefix}{card_key}"

    async def get(self, card_key: str) -> Optional[CardState]:
        try:
            raw = await self._client.get(self._key(card_key))
        except RedisError as exc:
            raise StateStoreError(f"Redis get failed for '{card_key}': {exc}") from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StateStoreError(f"Corrupt state document at '{card_key}': {exc}") from exc

    async def set(self, card_key: str, state: CardState) -> None:
        try:
            payload = json.dumps(state, default=str)
            if self._ttl_seconds:
                await self._client.set(self._key(card_key), payload, ex=self._ttl_seconds)
            else:
                await self._client.set(self._key(card_key), payload)
        except (RedisError, TypeError, ValueError) as exc:
            raise StateStoreError(f"Redis set failed for '{card_key}': {exc}") from exc
        logger.debug(f"Set state '{card_key}' (ttl={self._ttl_seconds}s)")

    async def delete(self, card_key: str) -> None:
        try:
            await self._client.delete(self._key(card_key))
        except RedisError as exc:
            raise StateStoreError(f"Redis delete failed for '{card_key}': {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()
