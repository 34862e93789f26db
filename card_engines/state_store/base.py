"""State store contract.

Backends persist one JSON document per card key. All operations are async and
may raise ``StateStoreError``; callers decide how to degrade. No retries and no
cross-request locking: concurrent ``get -> mutate -> set`` on one key is
last-write-wins.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from card_engines.cards.models import CardState


@runtime_checkable
class StateStore(Protocol):
    async def get(self, card_key: str) -> Optional[CardState]: ...

    async def set(self, card_key: str, state: CardState) -> None: ...

    async def delete(self, card_key: str) -> None: ...
