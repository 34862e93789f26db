"""OpenAPI 3.1 document for the card REST surface.

Lets HTTP-only hosts (custom GPT actions, plain clients) discover and call
cards and their actions.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable

from card_engines import __version__
from card_engines.cards.models import CardDefinition
from card_engines.mcp_gateway.adapter import merged_action_inputs
from card_engines.mcp_gateway.schema_gen import input_schema_to_json_schema


def _operation_id(*parts: str) -> str:
    return "_".join(part.replace("-", "_") for part in parts)


def _json_body(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "required": bool(schema.get("required")),
        "content": {"application/json": {"schema": schema}},
    }


def _card_paths(card: CardDefinition) -> Dict[str, Any]:
    paths: Dict[str, Any] = {}
    paths[f"/api/cards/{card.name}"] = {
        "post": {
            "operationId": _operation_id(card.name),
            "summary": card.description,
            "requestBody": _json_body(input_schema_to_json_schema(card.inputs)),
            "responses": {
                "200": {
                    "description": "Rendered card with text summary",
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {
                                    "card": {"type": "string"},
                                    "instanceId": {"type": "string"},
                                    "textSummary": {"type": "string", "description": "Markdown card output"},
                                    "markup": {"type": "string", "description": "Rendered HTML"},
                                    "state": {"type": "object"},
                                },
                            }
                        }
                    },
                }
            },
        }
    }

    for action_name, action in card.actions.items():
        schema = input_schema_to_json_schema(merged_action_inputs(card, action))
        paths[f"/api/cards/{card.name}/action/{action_name}"] = {
            "post": {
                "operationId": _operation_id(card.name, action_name),
                "summary": action.description or action.label,
                "requestBody": _json_body(schema),
                "responses": {
                    "200": {
                        "description": "Action result",
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "properties": {
                                        "message": {"type": "string"},
                                        "output": {},
                                        "state": {"type": "object"},
                                    },
                                }
                            }
                        },
                    }
                },
            }
        }
    return paths


def generate_openapi_spec(cards: Iterable[CardDefinition], base_url: str) -> Dict[str, Any]:
    paths: Dict[str, Any] = {
        "/api/cards": {
            "get": {
                "operationId": "list_cards",
                "summary": "List all available cards",
                "responses": {
                    "200": {
                        "description": "Array of available cards",
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "array",
                                    "items": {
                                        "type": "object",
                                        "properties": {
                                            "name": {"type": "string"},
                                            "description": {"type": "string"},
                                            "actions": {"type": "array", "items": {"type": "string"}},
                                        },
                                    },
                                }
                            }
                        },
                    }
                },
            }
        }
    }
    for card in cards:
        paths.update(_card_paths(card))

    return {
        "openapi": "3.1.0",
        "info": {
            "title": "Card Engines API",
            "version": __version__,
            "description": "Execute interactive cards. Each card fetches live data and returns a text summary plus rendered markup.",
        },
        "servers": [{"url": base_url or "/"}],
        "paths": paths,
    }
