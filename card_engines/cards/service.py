"""Card service: the request path from raw inputs to persisted state.

validate inputs → resolve identity → store.get → render / dispatch → store.set

Store failures never fail the visible request: a failed read renders against
empty state and a failed write is logged, so an outage degrades to stateless
behaviour. Validation and unknown-operation errors are raised before any store
access.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from card_engines.cards.actions import dispatch_action, dispatch_webhook, get_action, partition_params
from card_engines.cards.inputs import prepare_inputs, redact_inputs, resolve_inputs
from card_engines.cards.instance import resolve_instance
from card_engines.cards.models import (
    CardDefinition,
    CardEnvironment,
    CardState,
    InstanceIdentity,
    RenderResult,
)
from card_engines.cards.registry import CardRegistry
from card_engines.cards.render import render_card
from card_engines.cards.templates import TemplateRenderer
from card_engines.state_store.base import StateStore

logger = logging.getLogger(__name__)

SHARE_KEY_PREFIX = "share"


@dataclass
class RenderedCard:
    card_name: str
    identity: InstanceIdentity
    result: RenderResult
    inputs: Dict[str, Any] = field(default_factory=dict)
    persisted: bool = False

    @property
    def instance_id(self) -> str:
        return self.identity.instance_id

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "card": self.card_name,
            "instanceId": self.identity.instance_id,
            "markup": self.result.markup,
            "state": self.result.new_state,
            "isError": self.result.is_error,
        }
        if self.result.text_summary is not None:
            data["textSummary"] = self.result.text_summary
        if self.result.share_token:
            data["shareToken"] = self.result.share_token
        return data


@dataclass
class ActionResponse:
    card_name: str
    action_name: str
    identity: InstanceIdentity
    state: CardState
    message: Optional[str] = None
    output: Any = None
    state_changed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "card": self.card_name,
            "action": self.action_name,
            "instanceId": self.identity.instance_id,
            "state": self.state,
        }
        if self.message is not None:
            data["message"] = self.message
        if self.output is not None:
            data["output"] = self.output
        return data


class CardService:
    def __init__(
        self,
        registry: CardRegistry,
        store: StateStore,
        env: Optional[CardEnvironment] = None,
        template_renderer: Optional[TemplateRenderer] = None,
        instance_id_length: Optional[int] = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.env = env or CardEnvironment()
        self._templates = template_renderer or TemplateRenderer()
        self._instance_id_length = instance_id_length

    # --- store access with degrade-on-failure ---

    async def _load_state(self, card_key: str) -> CardState:
        try:
            state = await self.store.get(card_key)
        except Exception as exc:
            logger.warning(f"State read failed for '{card_key}', continuing without state: {exc}")
            return {}
        return dict(state) if state else {}

    async def _save_state(self, card_key: str, state: CardState) -> bool:
        try:
            await self.store.set(card_key, state)
        except Exception as exc:
            logger.error(f"State write failed for '{card_key}', result not persisted: {exc}")
            return False
        logger.debug(f"Persisted state for '{card_key}' ({len(state)} keys)")
        return True

    def _identity(self, card: CardDefinition, inputs: Mapping[str, Any], user_id: Optional[str]) -> InstanceIdentity:
        return resolve_instance(card, inputs, user_id, self._instance_id_length)

    # --- operations ---

    def resolve_card_inputs(self, card: CardDefinition, raw_inputs: Mapping[str, Any]) -> Dict[str, Any]:
        return resolve_inputs(card.inputs, prepare_inputs(card, raw_inputs), card_name=card.name)

    async def render(
        self,
        card_name: str,
        raw_inputs: Optional[Mapping[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> RenderedCard:
        card = self.registry.get(card_name)
        raw = dict(raw_inputs or {})
        # Only declared inputs identify the instance; get_data still sees every raw key.
        declared, _ = partition_params(card, raw)
        inputs = self.resolve_card_inputs(card, declared)
        identity = self._identity(card, inputs, user_id)
        logger.debug(f"Rendering '{card.name}' inputs={redact_inputs(card.inputs, inputs)}")

        state = await self._load_state(identity.card_key)
        result = await render_card(
            card,
            inputs,
            state,
            env=self.env,
            renderer=self._templates,
            raw_inputs=raw,
            instance_id_length=self._instance_id_length,
            instance_id=identity.instance_id,
        )

        persisted = False
        if not result.is_error and result.new_state:
            persisted = await self._save_state(identity.card_key, result.new_state)
        if result.share_token:
            await self._remember_share(card, result.share_token, inputs)

        return RenderedCard(card_name=card.name, identity=identity, result=result, inputs=inputs, persisted=persisted)

    async def run_action(
        self,
        card_name: str,
        action_name: str,
        params: Optional[Mapping[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> ActionResponse:
        card = self.registry.get(card_name)
        get_action(card, action_name)
        flat = dict(params or {})

        # Same identity the card itself would resolve: defaults applied, no generated id.
        raw_card_inputs, action_inputs = partition_params(card, flat)
        card_inputs = resolve_inputs(card.inputs, raw_card_inputs, card_name=card.name, action_name=action_name)
        identity = self._identity(card, card_inputs, user_id)

        state = await self._load_state(identity.card_key)
        outcome = await dispatch_action(card, action_name, {**action_inputs, **card_inputs}, state)

        final_state = state
        if outcome.new_state is not None:
            final_state = outcome.new_state
            await self._save_state(identity.card_key, final_state)

        return ActionResponse(
            card_name=card.name,
            action_name=action_name,
            identity=identity,
            state=final_state,
            message=outcome.message,
            output=outcome.output,
            state_changed=outcome.new_state is not None,
        )

    async def receive_webhook(
        self,
        card_name: str,
        payload: Mapping[str, Any],
        raw_inputs: Optional[Mapping[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> ActionResponse:
        card = self.registry.get(card_name)
        declared, _ = partition_params(card, dict(raw_inputs or {}))
        inputs = resolve_inputs(card.inputs, declared, card_name=card.name, action_name="webhook")
        identity = self._identity(card, inputs, user_id)
        state = await self._load_state(identity.card_key)
        new_state = await dispatch_webhook(card, payload, state)
        await self._save_state(identity.card_key, new_state)
        return ActionResponse(
            card_name=card.name,
            action_name="webhook",
            identity=identity,
            state=new_state,
            state_changed=True,
        )

    # --- share links ---

    def _share_key(self, card_name: str, token: str) -> str:
        return f"{SHARE_KEY_PREFIX}:{card_name}:{token}"

    async def _remember_share(self, card: CardDefinition, token: str, inputs: Mapping[str, Any]) -> None:
        # Sensitive inputs never go into a public share record.
        public_inputs = {k: v for k, v in inputs.items() if not (k in card.inputs and card.inputs[k].sensitive)}
        await self._save_state(self._share_key(card.name, token), {"inputs": public_inputs})

    async def resolve_share(self, card_name: str, token: str) -> Optional[Dict[str, Any]]:
        """Inputs recorded for a share token, or None when unknown."""
        self.registry.get(card_name)
        record = await self._load_state(self._share_key(card_name, token))
        inputs = record.get("inputs")
        return dict(inputs) if isinstance(inputs, dict) else None
