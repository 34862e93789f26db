"""Input schema resolution: defaults, required checks, unique-instance ids."""
from __future__ import annotations

import secrets
from typing import Any, Dict, Mapping, Optional

from card_engines.cards.errors import CardInputError
from card_engines.cards.models import CardDefinition, InputSchema

REDACTED = "***"
UNIQUE_ID_INPUT = "id"


def _is_absent(value: Any) -> bool:
    return value is None


def resolve_inputs(
    schema: InputSchema,
    raw_inputs: Mapping[str, Any],
    card_name: Optional[str] = None,
    action_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Resolve caller-supplied values against ``schema``.

    Defaults are substituted for absent keys first; every required key still
    absent afterwards is collected into a single ``CardInputError``. Keys that
    are not declared in the schema pass through untouched. Absent optional keys
    without a default are left out of the result.
    """
    resolved: Dict[str, Any] = {k: v for k, v in raw_inputs.items() if not _is_absent(v)}

    for key, definition in schema.items():
        if key not in resolved and definition.has_default:
            resolved[key] = definition.default

    missing = [key for key, definition in schema.items() if definition.required and key not in resolved]
    if missing:
        raise CardInputError(missing, card_name=card_name, action_name=action_name)
    return resolved


def prepare_inputs(card: CardDefinition, raw_inputs: Mapping[str, Any]) -> Dict[str, Any]:
    """Give ``unique_instance`` cards a fresh random ``id`` when the caller omitted one.

    This is the one deliberate source of non-determinism in identity
    resolution: cards that create a new resource per call opt into it, and
    otherwise-identical calls then land on distinct instances. Inputs are
    returned unchanged for every other card, or when an ``id`` was supplied.
    """
    prepared = dict(raw_inputs)
    if card.unique_instance and UNIQUE_ID_INPUT in card.inputs and not prepared.get(UNIQUE_ID_INPUT):
        prepared[UNIQUE_ID_INPUT] = secrets.token_hex(3)
    return prepared


def redact_inputs(schema: InputSchema, inputs: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of ``inputs`` with sensitive values masked, for logging."""
    return {
        key: (REDACTED if key in schema and schema[key].sensitive else value)
        for key, value in inputs.items()
    }
