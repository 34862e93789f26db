"""Command-line entry point: list cards, render one, export OpenAPI, run the gateway."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Dict, List, Optional, Sequence

from card_engines.cards.errors import CardEngineError
from card_engines.cards.models import CardEnvironment
from card_engines.cards.service import CardService
from card_engines.config import runtime_config
from card_engines.demo_cards import build_demo_registry
from card_engines.mcp_gateway.openapi import generate_openapi_spec
from card_engines.mcp_gateway.schema_gen import coerce_text_inputs
from card_engines.state_store.service import create_state_store

logger = logging.getLogger(__name__)


def parse_input_pairs(pairs: Optional[List[str]]) -> Dict[str, str]:
    inputs: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"--input expects key=value, got: {pair!r}")
        inputs[key] = value
    return inputs


def cmd_list(args: argparse.Namespace) -> int:
    for card in build_demo_registry().list_cards():
        actions = ", ".join(card.actions) or "-"
        print(f"{card.name}\t{card.description}\tactions: {actions}")
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    registry = build_demo_registry()
    card = registry.get(args.card)
    inputs = coerce_text_inputs(card.inputs, parse_input_pairs(args.input))
    service = CardService(
        registry=registry,
        store=create_state_store(),
        env=CardEnvironment(base_url=runtime_config.get_base_url()),
        instance_id_length=runtime_config.get_instance_id_length(),
    )
    rendered = asyncio.run(service.render(card.name, inputs, user_id=args.user_id))
    if args.json:
        print(json.dumps(rendered.to_dict(), indent=2, default=str))
    elif args.markup:
        print(rendered.result.markup)
    else:
        print(rendered.result.text_summary or rendered.result.markup)
    return 1 if rendered.result.is_error else 0


def cmd_openapi(args: argparse.Namespace) -> int:
    base_url = args.base_url if args.base_url is not None else runtime_config.get_base_url()
    spec = generate_openapi_spec(build_demo_registry().list_cards(), base_url)
    print(json.dumps(spec, indent=2))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    logger.info(f"Starting card gateway on {args.host}:{args.port}")
    uvicorn.run("card_engines.mcp_gateway.server:app", host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="card-engines", description="Interactive card runtime")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List registered cards")
    p_list.set_defaults(func=cmd_list)

    p_render = sub.add_parser("render", help="Render a card and print its text summary")
    p_render.add_argument("card", help="Card name, e.g. do-poll")
    p_render.add_argument("--input", "-i", action="append", metavar="KEY=VALUE", help="Card input (repeatable)")
    p_render.add_argument("--user-id", default=None, help="Caller id for per-user state keys")
    output = p_render.add_mutually_exclusive_group()
    output.add_argument("--markup", action="store_true", help="Print rendered markup instead of text")
    output.add_argument("--json", action="store_true", help="Print the full render result as JSON")
    p_render.set_defaults(func=cmd_render)

    p_openapi = sub.add_parser("openapi", help="Print the OpenAPI document for the card REST surface")
    p_openapi.add_argument("--base-url", default=None, help="Server URL (defaults to CARD_BASE_URL)")
    p_openapi.set_defaults(func=cmd_openapi)

    p_serve = sub.add_parser("serve", help="Run the HTTP gateway with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.set_defaults(func=cmd_serve)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    level = runtime_config.get_log_level()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    args.log_level = level
    try:
        return args.func(args)
    except CardEngineError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    except ValueError as exc:
        parser.error(str(exc))
    return 2


if __name__ == "__main__":
    sys.exit(main())
