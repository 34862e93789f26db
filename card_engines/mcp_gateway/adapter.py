"""Expose cards as callable operations.

Each card becomes an operation named after the card; each action becomes
``<card>__<action>`` with the card's inputs and the action's inputs merged into
one parameter schema. Handlers run the card service, bump the card's usage
counter and format the result as tool content: text first, then an optional
PNG image, then the raw markup as an HTML resource.
"""
from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Optional

from card_engines.cards.models import ActionDefinition, CardDefinition, InputDefinition, InputSchema
from card_engines.cards.service import CardService, RenderedCard
from card_engines.common.identity import CallerContext
from card_engines.mcp_gateway.inventory import (
    CardOperation,
    ImageContent,
    MarkupContent,
    MarkupResource,
    OperationInventory,
    TextContent,
    ToolResult,
)
from card_engines.mcp_gateway.schema_gen import input_schema_to_json_schema, input_schema_to_model
from card_engines.screenshot.service import ImageRenderer, NullImageRenderer, render_image_safely
from card_engines.usage.counter import UsageCounter, record_usage

logger = logging.getLogger(__name__)

ACTION_SEPARATOR = "__"


def action_operation_name(card_name: str, action_name: str) -> str:
    return f"{card_name}{ACTION_SEPARATOR}{action_name}"


def merged_action_inputs(card: CardDefinition, action: ActionDefinition) -> InputSchema:
    merged: Dict[str, InputDefinition] = dict(card.inputs)
    merged.update(action.inputs)
    return merged


def action_summary(card: CardDefinition, action: ActionDefinition) -> str:
    return action.description or f"{action.label}: action on the {card.name} card"


def _model_name(name: str) -> str:
    return "".join(part.capitalize() for part in name.replace("-", "_").split("_") if part) + "Input"


class CardToolAdapter:
    def __init__(
        self,
        service: CardService,
        usage_counter: UsageCounter,
        image_renderer: Optional[ImageRenderer] = None,
        include_markup: bool = True,
    ) -> None:
        self._service = service
        self._usage = usage_counter
        self._images = image_renderer or NullImageRenderer()
        self._include_markup = include_markup

    # --- descriptors ---

    def build_operations(self, card: CardDefinition) -> List[CardOperation]:
        operations = [self._card_operation(card)]
        for action_name, action in card.actions.items():
            operations.append(self._action_operation(card, action_name, action))
        return operations

    def register_all(self, inventory: OperationInventory) -> None:
        for card in self._service.registry.list_cards():
            for operation in self.build_operations(card):
                inventory.register(operation)
        logger.info(f"Registered {len(inventory.list_operations())} card operations")

    def _card_operation(self, card: CardDefinition) -> CardOperation:
        async def handler(ctx: CallerContext, arguments: Dict[str, Any]) -> ToolResult:
            rendered = await self._service.render(card.name, arguments, user_id=ctx.user_id)
            await record_usage(self._usage, card.name)
            return await self.format_render(rendered)

        return CardOperation(
            name=card.name,
            description=card.description,
            parameters=input_schema_to_json_schema(card.inputs),
            handler=handler,
            input_model=input_schema_to_model(_model_name(card.name), card.inputs),
            card_name=card.name,
            annotations={"card": card.name, "shareable": card.shareable},
        )

    def _action_operation(self, card: CardDefinition, action_name: str, action: ActionDefinition) -> CardOperation:
        name = action_operation_name(card.name, action_name)
        schema = merged_action_inputs(card, action)

        async def handler(ctx: CallerContext, arguments: Dict[str, Any]) -> ToolResult:
            response = await self._service.run_action(card.name, action_name, arguments, user_id=ctx.user_id)
            await record_usage(self._usage, card.name)
            if response.message is not None:
                text = response.message
            else:
                text = json.dumps(response.output if response.output is not None else {"ok": True}, default=str)
            return ToolResult(content=[TextContent(text=text)], structuredContent=response.to_dict())

        return CardOperation(
            name=name,
            description=action_summary(card, action),
            parameters=input_schema_to_json_schema(schema),
            handler=handler,
            input_model=input_schema_to_model(_model_name(name), schema),
            card_name=card.name,
            action_name=action_name,
            annotations={
                "card": card.name,
                "action": action_name,
                "label": action.label,
                "permission": action.permission,
            },
        )

    # --- content formatting ---

    async def format_render(self, rendered: RenderedCard) -> ToolResult:
        result = rendered.result
        content: List[Any] = [TextContent(text=result.text_summary or result.markup)]

        if not result.is_error:
            png = await render_image_safely(self._images, result.markup)
            if png:
                content.append(ImageContent(data=base64.b64encode(png).decode("ascii")))

        if self._include_markup:
            content.append(
                MarkupContent(
                    resource=MarkupResource(
                        uri=f"ui://card/{rendered.card_name}/{rendered.instance_id}",
                        text=result.markup,
                    )
                )
            )

        return ToolResult(content=content, isError=result.is_error, structuredContent=rendered.to_dict())
