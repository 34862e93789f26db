"""Rendering pipeline: data fetch → state merge → template → share header → container.

Data-fetch failures are recovered into an in-band error card whose text summary
is ``"Error: <message>"`` and whose state is the untouched input state.
Template failures are authoring defects and propagate as ``CardTemplateError``.
"""
from __future__ import annotations

import html
import logging
from typing import Any, Dict, Mapping, Optional

from card_engines.cards.errors import DataFetchError
from card_engines.cards.instance import compute_instance_id
from card_engines.cards.models import (
    CardDefinition,
    CardEnvironment,
    CardState,
    GetDataContext,
    GetDataResult,
    RenderResult,
)
from card_engines.cards.templates import TemplateRenderer

logger = logging.getLogger(__name__)

SHARE_PATH = "/s"


def merge_state(state: Mapping[str, Any], partial: Optional[Mapping[str, Any]]) -> CardState:
    """Shallow merge; keys in ``partial`` win."""
    merged = dict(state)
    if partial:
        merged.update(partial)
    return merged


def share_url(card: CardDefinition, token: str, env: CardEnvironment) -> str:
    return f"{env.base_url.rstrip('/')}{SHARE_PATH}/{card.name}/{token}"


def _share_header(card: CardDefinition, token: str, env: CardEnvironment) -> str:
    url = html.escape(share_url(card, token, env), quote=True)
    return (
        f'<div class="card-share" data-share-token="{html.escape(token, quote=True)}">'
        f'<a href="{url}" target="_blank" rel="noopener">Share</a></div>'
    )


def wrap_markup(card: CardDefinition, markup: str, share_token: Optional[str] = None) -> str:
    attrs = f'class="card-container" data-card="{html.escape(card.name, quote=True)}"'
    if share_token:
        attrs += f' data-share-token="{html.escape(share_token, quote=True)}"'
    return f"<div {attrs}>\n{markup}\n</div>"


def error_markup(card: CardDefinition, message: str) -> str:
    return (
        '<div class="card-error">'
        f'<div class="card-error-title">{html.escape(card.name)}</div>'
        f'<p class="card-error-message">{html.escape(message)}</p>'
        "</div>"
    )


async def _fetch(card: CardDefinition, context: GetDataContext) -> GetDataResult:
    try:
        result = await card.get_data(context)
    except Exception as exc:
        raise DataFetchError(str(exc) or type(exc).__name__, card_name=card.name) from exc
    if not isinstance(result, GetDataResult):
        raise DataFetchError(
            f"get_data returned {type(result).__name__}, expected GetDataResult",
            card_name=card.name,
        )
    return result


async def render_card(
    card: CardDefinition,
    inputs: Mapping[str, Any],
    state: Mapping[str, Any],
    env: Optional[CardEnvironment] = None,
    renderer: Optional[TemplateRenderer] = None,
    raw_inputs: Optional[Mapping[str, Any]] = None,
    instance_id_length: Optional[int] = None,
    instance_id: Optional[str] = None,
) -> RenderResult:
    """Run the pipeline for one request.

    ``instance_id`` is the already resolved public id, reused as the share token;
    when omitted it is computed from ``inputs``.
    """
    env = env or CardEnvironment()
    renderer = renderer or TemplateRenderer()
    context = GetDataContext(
        inputs=dict(inputs),
        state=dict(state),
        env=env,
        raw_inputs=dict(raw_inputs if raw_inputs is not None else inputs),
    )

    try:
        result = await _fetch(card, context)
    except DataFetchError as exc:
        logger.error(f"Data fetch failed for card '{card.name}': {exc.message}", exc_info=exc.__cause__)
        return RenderResult(
            markup=wrap_markup(card, error_markup(card, exc.message)),
            new_state=dict(state),
            text_summary=f"Error: {exc.message}",
            raw_data=None,
            is_error=True,
        )

    new_state = merge_state(state, result.state)
    view_model: Dict[str, Any] = dict(result.view_model or {})
    markup = await renderer.render(card, view_model)

    token = None
    if card.shareable:
        token = instance_id or compute_instance_id(card, inputs, instance_id_length)
        markup = _share_header(card, token, env) + markup

    return RenderResult(
        markup=wrap_markup(card, markup, token),
        new_state=new_state,
        text_summary=result.text_output,
        raw_data=view_model,
        share_token=token,
    )
