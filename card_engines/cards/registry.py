from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from card_engines.cards.errors import UnknownCardError
from card_engines.cards.models import CardDefinition

logger = logging.getLogger(__name__)


class CardRegistry:
    """Lookup table of card definitions, populated by explicit registration."""

    def __init__(self, cards: Optional[Iterable[CardDefinition]] = None) -> None:
        self._cards: Dict[str, CardDefinition] = {}
        for card in cards or ():
            self.register(card)

    def register(self, card: CardDefinition) -> None:
        if card.name in self._cards and self._cards[card.name] is not card:
            raise ValueError(f"Card '{card.name}' is already registered")
        self._cards[card.name] = card
        logger.debug(f"Registered card '{card.name}' ({len(card.actions)} actions)")

    def clear(self) -> None:
        """Resets the registry, removing all cards."""
        self._cards.clear()

    def find(self, name: str) -> Optional[CardDefinition]:
        return self._cards.get(name)

    def get(self, name: str) -> CardDefinition:
        card = self._cards.get(name)
        if card is None:
            raise UnknownCardError(name)
        return card

    def list_cards(self) -> List[CardDefinition]:
        return list(self._cards.values())

    def __contains__(self, name: object) -> bool:
        return name in self._cards

    def __len__(self) -> int:
        return len(self._cards)
