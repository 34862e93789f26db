"""Filesystem-backed state store (one JSON file per card key).

Location: {base_dir}/{card name}/{quoted card key}.json
Intended for local development; single host only.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from card_engines.cards.errors import StateStoreError
from card_engines.cards.models import CardState

logger = logging.getLogger(__name__)

# Longer quoted keys are replaced by their sha256 hex digest.
MAX_FILENAME = 200


class FileSystemStateStore:
    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._base_dir = Path(base_dir or Path.cwd() / "var" / "card_state")
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, card_key: str) -> Path:
        parts = card_key.split(":", 2)
        folder = parts[1] if len(parts) == 3 else "_"
        name = quote(card_key, safe="")
        if len(name) > MAX_FILENAME:
            name = hashlib.sha256(card_key.encode("utf-8")).hexdigest()
        return self._base_dir / quote(folder, safe="") / f"{name}.json"

    async def get(self, card_key: str) -> Optional[CardState]:
        path = self._path(card_key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StateStoreError(f"Failed to read state '{card_key}': {exc}") from exc

    async def set(self, card_key: str, state: CardState) -> None:
        path = self._path(card_key)
        tmp = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(state, f, default=str)
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as exc:
            raise StateStoreError(f"Failed to write state '{card_key}': {exc}") from exc
        logger.debug(f"Wrote state file {path}")

    async def delete(self, card_key: str) -> None:
        try:
            self._path(card_key).unlink(missing_ok=True)
        except OSError as exc:
            raise StateStoreError(f"Failed to delete state '{card_key}': {exc}") from exc
