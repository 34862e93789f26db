"""Action and webhook dispatch.

Actions always operate on the owning card's state document. A flat parameter
map is split into card inputs (keys the card declares) and action inputs
(everything else), so one request can carry both.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Tuple

from card_engines.cards.errors import CardActionError, UnknownActionError
from card_engines.cards.inputs import resolve_inputs
from card_engines.cards.models import (
    ActionContext,
    ActionDefinition,
    ActionOutcome,
    ActionResult,
    CardDefinition,
    CardState,
    WebhookContext,
    WebhookResult,
)
from card_engines.cards.render import merge_state

logger = logging.getLogger(__name__)


def get_action(card: CardDefinition, action_name: str) -> ActionDefinition:
    action = card.actions.get(action_name) if action_name else None
    if action is None:
        raise UnknownActionError(card.name, action_name or "")
    return action


def partition_params(card: CardDefinition, params: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    card_inputs: Dict[str, Any] = {}
    action_inputs: Dict[str, Any] = {}
    for key, value in params.items():
        if key in card.inputs:
            card_inputs[key] = value
        else:
            action_inputs[key] = value
    return card_inputs, action_inputs


async def dispatch_action(
    card: CardDefinition,
    action_name: str,
    params: Mapping[str, Any],
    state: Mapping[str, Any],
) -> ActionOutcome:
    """Run ``action_name`` against ``state``.

    ``params`` is the flat request map. Card inputs are expected to be resolved
    already (defaults applied) by the caller, since they also determine the
    state identity; action inputs are resolved here against the action schema.
    ``new_state`` is the merged document when the handler returned partial
    state, ``None`` when it left state alone.
    """
    action = get_action(card, action_name)
    card_inputs, raw_action_inputs = partition_params(card, params)
    action_inputs = resolve_inputs(action.inputs, raw_action_inputs, card_name=card.name, action_name=action_name)

    context = ActionContext(card_inputs=card_inputs, state=dict(state), action_inputs=action_inputs)
    try:
        result = await action.handler(context)
    except Exception as exc:
        logger.error(f"Action '{card.name}.{action_name}' failed: {exc}", exc_info=exc)
        raise CardActionError(
            f"Action '{action_name}' failed: {exc}",
            card_name=card.name,
            action_name=action_name,
        ) from exc

    if result is None:
        result = ActionResult()
    new_state = merge_state(state, result.state) if result.state is not None else None
    return ActionOutcome(new_state=new_state, message=result.message, output=result.output)


async def dispatch_webhook(card: CardDefinition, payload: Mapping[str, Any], state: Mapping[str, Any]) -> CardState:
    """Feed a webhook payload to the card; returns the merged state (unchanged if none returned)."""
    if card.on_webhook is None:
        raise UnknownActionError(card.name, "webhook")
    try:
        result = await card.on_webhook(WebhookContext(payload=dict(payload), state=dict(state)))
    except Exception as exc:
        logger.error(f"Webhook for card '{card.name}' failed: {exc}", exc_info=exc)
        raise CardActionError(f"Webhook failed: {exc}", card_name=card.name, action_name="webhook") from exc
    if result is None:
        result = WebhookResult()
    return merge_state(state, result.state)
