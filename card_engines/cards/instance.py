"""Instance identity: public instance ids and durable state keys.

``instance_id`` is short, public and never depends on the caller, so it is safe
to put in share links. ``card_key`` is the state-store key and may include a
caller id when the card's custom state-key function uses one.

Format of the key: ``card:<card name>:<custom key or reversible input encoding>``.
"""
from __future__ import annotations

import base64
import hashlib
import json
import logging
from typing import Any, Mapping, Optional

from card_engines.cards.models import CardDefinition, InstanceIdentity
from card_engines.config import runtime_config

logger = logging.getLogger(__name__)

KEY_PREFIX = "card"


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return str(value)


def sorted_pairs(inputs: Mapping[str, Any]) -> str:
    """``key=value`` pairs sorted by key and joined with ``&``."""
    return "&".join(f"{key}={_format_value(inputs[key])}" for key in sorted(inputs))


def stable_key(inputs: Mapping[str, Any]) -> str:
    """Reversible (unpadded base64url) encoding of the sorted pairs string."""
    encoded = base64.urlsafe_b64encode(sorted_pairs(inputs).encode("utf-8"))
    return encoded.decode("ascii").rstrip("=")


def decode_stable_key(key: str) -> str:
    """Inverse of ``stable_key``; handy when reading keys out of a store."""
    padding = "=" * (-len(key) % 4)
    return base64.urlsafe_b64decode(key + padding).decode("utf-8")


def input_digest(inputs: Mapping[str, Any], length: Optional[int] = None) -> str:
    size = length or runtime_config.get_instance_id_length()
    return hashlib.sha256(sorted_pairs(inputs).encode("utf-8")).hexdigest()[:size]


def _custom_key(card: CardDefinition, inputs: Mapping[str, Any], user_id: Optional[str]) -> Optional[str]:
    if card.state_key is None:
        return None
    try:
        key = card.state_key(inputs, user_id)
    except Exception as exc:
        logger.warning(f"State key function for card '{card.name}' failed, using input hash: {exc}")
        return None
    return str(key) if key else None


def _public_id(custom: Optional[str], inputs: Mapping[str, Any], length: Optional[int]) -> str:
    if custom:
        return custom.rsplit(":", 1)[-1]
    return input_digest(inputs, length)


def compute_instance_id(card: CardDefinition, inputs: Mapping[str, Any], length: Optional[int] = None) -> str:
    """Public, user-independent instance id for ``card`` + ``inputs``.

    A custom state key like ``"id:71a1bc"`` yields the part after the final
    colon; a key without a colon is used whole. Without a custom key the id is
    a truncated SHA-256 digest of the sorted inputs.
    """
    return _public_id(_custom_key(card, inputs, None), inputs, length)


def resolve_instance(
    card: CardDefinition,
    inputs: Mapping[str, Any],
    user_id: Optional[str] = None,
    length: Optional[int] = None,
) -> InstanceIdentity:
    """Instance id and storage key in one pass.

    The custom state-key function runs once for anonymous callers. With a user
    id it runs a second time, because the public id must not depend on the caller.
    """
    public = _custom_key(card, inputs, None)
    custom = public if user_id is None else _custom_key(card, inputs, user_id)
    suffix = custom if custom else stable_key(inputs)
    identity = InstanceIdentity(
        instance_id=_public_id(public, inputs, length),
        card_key=f"{KEY_PREFIX}:{card.name}:{suffix}",
    )
    logger.debug(f"Resolved instance {identity.instance_id} -> {identity.card_key}")
    return identity
