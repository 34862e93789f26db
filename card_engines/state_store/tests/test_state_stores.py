import asyncio
from typing import Any, Dict, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from card_engines.cards.errors import StateStoreError
from card_engines.state_store import (
    FileSystemStateStore,
    InMemoryStateStore,
    RedisStateStore,
    StateStore,
    create_state_store,
)


class FakeRedis:
    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, Optional[int]] = {}
        self.closed = False

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, key: str) -> int:
        return 1 if self.data.pop(key, None) is not None else 0

    async def aclose(self) -> None:
        self.closed = True


class DownRedis:
    async def get(self, key: str) -> Any:
        raise RedisConnectionError("connection refused")

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> Any:
        raise RedisConnectionError("connection refused")

    async def delete(self, key: str) -> Any:
        raise RedisConnectionError("connection refused")


def _roundtrip(store) -> None:
    key = "card:do-poll:id:71a1bc"
    assert asyncio.run(store.get(key)) is None
    asyncio.run(store.set(key, {"votes": {"A": 1}, "closed": False}))
    assert asyncio.run(store.get(key)) == {"votes": {"A": 1}, "closed": False}
    asyncio.run(store.delete(key))
    assert asyncio.run(store.get(key)) is None


def test_in_memory_store():
    store = InMemoryStateStore()
    _roundtrip(store)
    assert isinstance(store, StateStore)


def test_in_memory_store_isolates_documents():
    store = InMemoryStateStore()
    state = {"items": [1]}
    asyncio.run(store.set("k", state))
    state["items"].append(2)
    loaded = asyncio.run(store.get("k"))
    loaded["items"].append(3)
    assert asyncio.run(store.get("k")) == {"items": [1]}


def test_filesystem_store(tmp_path):
    store = FileSystemStateStore(base_dir=tmp_path)
    _roundtrip(store)


def test_filesystem_store_layout(tmp_path):
    store = FileSystemStateStore(base_dir=tmp_path)
    asyncio.run(store.set("card:do-poll:id:71a1bc", {"a": 1}))
    files = list((tmp_path / "do-poll").glob("*.json"))
    assert len(files) == 1
    assert not list(tmp_path.rglob("*.tmp"))


def test_filesystem_store_long_keys(tmp_path):
    store = FileSystemStateStore(base_dir=tmp_path)
    key = "card:demo:" + "x" * 400
    asyncio.run(store.set(key, {"a": 1}))
    assert asyncio.run(store.get(key)) == {"a": 1}


def test_filesystem_store_corrupt_document(tmp_path):
    store = FileSystemStateStore(base_dir=tmp_path)
    asyncio.run(store.set("card:demo:k", {"a": 1}))
    next((tmp_path / "demo").glob("*.json")).write_text("{not json", encoding="utf-8")
    with pytest.raises(StateStoreError):
        asyncio.run(store.get("card:demo:k"))


def test_redis_store_with_ttl():
    client = FakeRedis()
    store = RedisStateStore(client=client, ttl_seconds=60, key_prefix="test:")
    _roundtrip(store)

    asyncio.run(store.set("card:x:k", {"n": 1}))
    assert client.data["test:card:x:k"] == '{"n": 1}'
    assert client.expiry["test:card:x:k"] == 60

    asyncio.run(store.close())
    assert client.closed is True


def test_redis_store_without_ttl():
    client = FakeRedis()
    store = RedisStateStore(client=client)
    asyncio.run(store.set("card:x:k", {"n": 1}))
    assert client.expiry["card:x:k"] is None


def test_redis_store_wraps_connection_errors():
    store = RedisStateStore(client=DownRedis())
    with pytest.raises(StateStoreError):
        asyncio.run(store.get("k"))
    with pytest.raises(StateStoreError):
        asyncio.run(store.set("k", {}))
    with pytest.raises(StateStoreError):
        asyncio.run(store.delete("k"))


def test_redis_store_requires_url():
    with pytest.raises(RuntimeError):
        RedisStateStore()


def test_factory_selects_backend(monkeypatch, tmp_path):
    monkeypatch.setenv("CARD_STATE_BACKEND", "memory")
    assert isinstance(create_state_store(), InMemoryStateStore)

    monkeypatch.setenv("CARD_STATE_DIR", str(tmp_path))
    assert isinstance(create_state_store("filesystem"), FileSystemStateStore)

    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv("CARD_STATE_TTL_SECONDS", "0")
    store = create_state_store("redis")
    assert isinstance(store, RedisStateStore)
    assert store._ttl_seconds is None


def test_factory_rejects_misconfiguration(monkeypatch):
    monkeypatch.delenv("REDIS_URL", raising=False)
    with pytest.raises(RuntimeError):
        create_state_store("redis")
    with pytest.raises(RuntimeError):
        create_state_store("dynamo")
