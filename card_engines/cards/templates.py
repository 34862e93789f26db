"""Template strategies.

Cards declare either a ``FunctionTemplate`` or a ``FileTemplate``; each variant
is rendered by its own strategy, looked up by the variant's ``kind`` tag.
File templates go through a pluggable ``TemplateEngine`` (Jinja2 by default).
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from card_engines.cards.errors import CardTemplateError
from card_engines.cards.models import CardDefinition, FileTemplate, FunctionTemplate, Template

logger = logging.getLogger(__name__)


class TemplateEngine(Protocol):
    async def render_file(self, path: Path, context: Dict[str, Any]) -> str: ...


class JinjaTemplateEngine:
    """Loads and compiles template files with Jinja2, caching one environment per directory."""

    def __init__(self, autoescape: bool = True) -> None:
        self._autoescape = autoescape
        self._environments: Dict[Path, Environment] = {}

    def _environment(self, directory: Path) -> Environment:
        env = self._environments.get(directory)
        if env is None:
            env = Environment(
                loader=FileSystemLoader(str(directory)),
                autoescape=select_autoescape(["html", "xml", "j2"]) if self._autoescape else False,
                enable_async=True,
            )
            self._environments[directory] = env
        return env

    async def render_file(self, path: Path, context: Dict[str, Any]) -> str:
        env = self._environment(path.parent)
        template = env.get_template(path.name)
        return await template.render_async(**context)


class FunctionTemplateStrategy:
    async def render(self, card: CardDefinition, template: FunctionTemplate, view_model: Dict[str, Any]) -> str:
        return template.fn(view_model)


class FileTemplateStrategy:
    def __init__(self, engine: TemplateEngine) -> None:
        self._engine = engine

    def resolve_path(self, card: CardDefinition, template: FileTemplate) -> Path:
        path = Path(template.path)
        if not path.is_absolute() and card.card_dir is not None:
            path = Path(card.card_dir) / path
        return path.resolve()

    async def render(self, card: CardDefinition, template: FileTemplate, view_model: Dict[str, Any]) -> str:
        return await self._engine.render_file(self.resolve_path(card, template), view_model)


class TemplateRenderer:
    """Dispatches a card's template variant to its strategy."""

    def __init__(self, engine: Optional[TemplateEngine] = None) -> None:
        self._strategies = {
            "function": FunctionTemplateStrategy(),
            "file": FileTemplateStrategy(engine or JinjaTemplateEngine()),
        }

    async def render(self, card: CardDefinition, view_model: Dict[str, Any]) -> str:
        template: Template = card.template
        strategy = self._strategies[template.kind]
        try:
            markup = await strategy.render(card, template, view_model)
        except (TemplateError, OSError) as exc:
            raise CardTemplateError(f"Template for card '{card.name}' failed: {exc}", card_name=card.name) from exc
        except CardTemplateError:
            raise
        except Exception as exc:
            raise CardTemplateError(
                f"Template for card '{card.name}' raised {type(exc).__name__}: {exc}",
                card_name=card.name,
            ) from exc
        if not isinstance(markup, str):
            raise CardTemplateError(
                f"Template for card '{card.name}' returned {type(markup).__name__}, expected str",
                card_name=card.name,
            )
        return markup
