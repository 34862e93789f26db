from __future__ import annotations

import copy
from typing import Dict, Optional

from card_engines.cards.models import CardState


class InMemoryStateStore:
    """Process-local store for development and tests. State is lost on restart."""

    def __init__(self) -> None:
        self._items: Dict[str, CardState] = {}

    async def get(self, card_key: str) -> Optional[CardState]:
        state = self._items.get(card_key)
        return copy.deepcopy(state) if state is not None else None

    async def set(self, card_key: str, state: CardState) -> None:
        self._items[card_key] = copy.deepcopy(state)

    async def delete(self, card_key: str) -> None:
        self._items.pop(card_key, None)

    def keys(self):
        return list(self._items.keys())
