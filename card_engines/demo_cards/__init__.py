"""Bundled demo cards."""
from __future__ import annotations

from card_engines.cards.registry import CardRegistry
from card_engines.demo_cards.checklist import checklist_card
from card_engines.demo_cards.poll import poll_card
from card_engines.demo_cards.weather import weather_card

DEMO_CARDS = [weather_card, poll_card, checklist_card]


def build_demo_registry() -> CardRegistry:
    return CardRegistry(DEMO_CARDS)


__all__ = ["DEMO_CARDS", "build_demo_registry", "checklist_card", "poll_card", "weather_card"]
