"""Card state persistence (get / set / delete of one JSON document per card key)."""

from card_engines.state_store.base import StateStore
from card_engines.state_store.filesystem import FileSystemStateStore
from card_engines.state_store.in_memory import InMemoryStateStore
from card_engines.state_store.redis_store import RedisStateStore
from card_engines.state_store.service import create_state_store

__all__ = [
    "StateStore",
    "InMemoryStateStore",
    "FileSystemStateStore",
    "RedisStateStore",
    "create_state_store",
]
