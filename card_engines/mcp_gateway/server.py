from __future__ import annotations

import html
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field, ValidationError

from card_engines import __version__
from card_engines.cards.errors import CardEngineError
from card_engines.cards.models import CardEnvironment
from card_engines.cards.registry import CardRegistry
from card_engines.cards.service import CardService, RenderedCard
from card_engines.common.error_envelope import build_error_envelope, envelope_from_card_error, error_response
from card_engines.common.identity import CallerContext, get_caller_context
from card_engines.config import runtime_config
from card_engines.mcp_gateway.adapter import CardToolAdapter
from card_engines.mcp_gateway.inventory import OperationInventory
from card_engines.mcp_gateway.openapi import generate_openapi_spec
from card_engines.mcp_gateway.schema_gen import coerce_arguments, coerce_text_inputs, input_schema_to_json_schema
from card_engines.screenshot.service import ImageRenderer, create_image_renderer
from card_engines.state_store.base import StateStore
from card_engines.state_store.service import create_state_store
from card_engines.usage.counter import UsageCounter, create_usage_counter, record_usage

logger = logging.getLogger(__name__)

# --- Error Handling ---

async def _http_exception_handler(request: Request, exc: HTTPException):
    # Pass through envelopes built by error_response
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        return JSONResponse(content=detail, status_code=exc.status_code)

    envelope = build_error_envelope(
        code="http.exception",
        message=str(detail) if detail else "HTTP exception",
        status_code=exc.status_code,
    )
    return JSONResponse(content=envelope.model_dump(), status_code=exc.status_code)


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    envelope = build_error_envelope(
        code="validation.error",
        message="Validation failed",
        status_code=400,
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(content=envelope.model_dump(), status_code=400)


async def _card_exception_handler(request: Request, exc: CardEngineError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
    envelope = envelope_from_card_error(exc)
    return JSONResponse(content=envelope.model_dump(), status_code=exc.status_code)


async def _generic_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}", exc_info=exc)
    envelope = build_error_envelope(
        code="internal.error",
        message="Internal server error",
        status_code=500,
    )
    return JSONResponse(content=envelope.model_dump(), status_code=500)


def register_error_handlers(target_app: FastAPI) -> None:
    target_app.add_exception_handler(HTTPException, _http_exception_handler)
    target_app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    target_app.add_exception_handler(CardEngineError, _card_exception_handler)
    target_app.add_exception_handler(Exception, _generic_exception_handler)

# --- Models ---

class ToolCallRequest(BaseModel):
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class WebhookRequest(BaseModel):
    inputs: Dict[str, Any] = Field(default_factory=dict)
    payload: Dict[str, Any] = Field(default_factory=dict)

# --- Helpers ---

def preview_page(rendered: RenderedCard) -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html><head><meta charset="utf-8">'
        f"<title>{html.escape(rendered.card_name)}</title></head>\n"
        f"<body>\n{rendered.result.markup}\n</body></html>"
    )

# --- App Factory ---

def create_app(
    registry: Optional[CardRegistry] = None,
    store: Optional[StateStore] = None,
    usage_counter: Optional[UsageCounter] = None,
    image_renderer: Optional[ImageRenderer] = None,
    env: Optional[CardEnvironment] = None,
) -> FastAPI:
    if registry is None:
        from card_engines.demo_cards import build_demo_registry

        registry = build_demo_registry()

    service = CardService(
        registry=registry,
        store=store if store is not None else create_state_store(),
        env=env or CardEnvironment(base_url=runtime_config.get_base_url()),
        instance_id_length=runtime_config.get_instance_id_length(),
    )
    usage = usage_counter if usage_counter is not None else create_usage_counter()
    images = image_renderer or create_image_renderer()
    adapter = CardToolAdapter(service, usage, image_renderer=images)
    inventory = OperationInventory()
    adapter.register_all(inventory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Release pooled connections held by the renderer and the state backend.
        await images.aclose()
        close_store = getattr(service.store, "close", None)
        if close_store is not None:
            await close_store()
        logger.info("Card gateway stopped")

    app = FastAPI(title="Card Engines Gateway", version=__version__, lifespan=lifespan)

    register_error_handlers(app)

    app.state.registry = registry
    app.state.service = service
    app.state.usage = usage
    app.state.adapter = adapter
    app.state.inventory = inventory

    @app.get("/health")
    async def health_check():
        return {
            "service": "card_engines",
            "version": __version__,
            "time": time.time(),
            "status": "ok",
            "cards": len(registry),
        }

    # --- Operation descriptors ---

    @app.post("/tools/list")
    async def list_tools():
        return {"tools": [op.describe() for op in inventory.list_operations()]}

    @app.post("/tools/call")
    async def call_tool(
        req: ToolCallRequest,
        ctx: CallerContext = Depends(get_caller_context),
    ):
        operation = inventory.get(req.name)
        if operation is None:
            error_response(
                code="card.unknown_operation",
                message=f"Operation not found: {req.name}",
                status_code=404,
            )

        try:
            arguments = coerce_arguments(operation.input_model, req.arguments)
        except ValidationError as exc:
            error_response(
                code="validation.error",
                message=f"Argument validation failed for '{req.name}'",
                status_code=400,
                card_name=operation.card_name,
                action_name=operation.action_name,
                details={"errors": json.loads(exc.json(include_url=False))},
            )

        logger.debug(f"[{ctx.request_id}] calling {req.name}")
        result = await operation.handler(ctx, arguments)
        return {"result": result.model_dump(exclude_none=True)}

    # --- REST surface ---

    @app.get("/api/cards")
    async def list_cards():
        return [
            {
                "name": card.name,
                "description": card.description,
                "actions": list(card.actions),
                "inputSchema": input_schema_to_json_schema(card.inputs),
            }
            for card in registry.list_cards()
        ]

    @app.post("/api/cards/{card_name}")
    async def render_card_endpoint(
        card_name: str,
        inputs: Optional[Dict[str, Any]] = Body(default=None),
        ctx: CallerContext = Depends(get_caller_context),
    ):
        rendered = await service.render(card_name, inputs or {}, user_id=ctx.user_id)
        await record_usage(usage, card_name)
        return rendered.to_dict()

    @app.post("/api/cards/{card_name}/action/{action_name}")
    async def run_action_endpoint(
        card_name: str,
        action_name: str,
        params: Optional[Dict[str, Any]] = Body(default=None),
        ctx: CallerContext = Depends(get_caller_context),
    ):
        response = await service.run_action(card_name, action_name, params or {}, user_id=ctx.user_id)
        await record_usage(usage, card_name)
        return response.to_dict()

    @app.post("/api/cards/{card_name}/webhook")
    async def webhook_endpoint(
        card_name: str,
        req: WebhookRequest,
        ctx: CallerContext = Depends(get_caller_context),
    ):
        response = await service.receive_webhook(card_name, req.payload, req.inputs, user_id=ctx.user_id)
        return response.to_dict()

    @app.get("/card/{card_name}", response_class=HTMLResponse)
    async def preview_card(
        card_name: str,
        request: Request,
        ctx: CallerContext = Depends(get_caller_context),
    ):
        card = registry.get(card_name)
        operation = inventory.get(card.name)
        try:
            inputs = coerce_text_inputs(
                card.inputs,
                dict(request.query_params),
                model=operation.input_model if operation is not None else None,
            )
        except ValidationError as exc:
            error_response(
                code="validation.error",
                message=f"Query validation failed for '{card.name}'",
                status_code=400,
                card_name=card.name,
                details={"errors": json.loads(exc.json(include_url=False))},
            )
        rendered = await service.render(card_name, inputs, user_id=ctx.user_id)
        return HTMLResponse(preview_page(rendered))

    @app.get("/s/{card_name}/{token}", response_class=HTMLResponse)
    async def shared_card(card_name: str, token: str):
        inputs = await service.resolve_share(card_name, token)
        if inputs is None:
            error_response(
                code="card.unknown_share",
                message=f"Share link not found: {card_name}/{token}",
                status_code=404,
                card_name=card_name,
            )
        rendered = await service.render(card_name, inputs)
        return HTMLResponse(preview_page(rendered))

    @app.get("/api/usage")
    async def usage_snapshot():
        return {"usage": await usage.snapshot()}

    @app.get("/openapi-cards.json")
    async def openapi_cards():
        return generate_openapi_spec(registry.list_cards(), service.env.base_url)

    logger.info(f"Card gateway ready with {len(registry)} cards")
    return app

app = create_app()
