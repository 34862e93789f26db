"""Card authoring contract.

A card pairs a typed input schema, an async data-fetch function, optional
actions and a template. Definitions are immutable once registered; the engine
treats view models and state as plain JSON-like dicts and never looks inside.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

InputType = Literal["string", "number", "boolean", "date", "url", "email", "json"]
Permission = Literal["auto", "confirm", "explicit"]

CardState = Dict[str, Any]


class InputDefinition(BaseModel):
    """One named input of a card or action schema."""

    model_config = ConfigDict(frozen=True)

    type: InputType = "string"
    description: str = ""
    required: bool = False
    default: Any = None
    enum: Optional[Tuple[Any, ...]] = None
    sensitive: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not None


InputSchema = Mapping[str, InputDefinition]


@dataclass(frozen=True)
class CardEnvironment:
    """Opaque runtime environment handed to cards. Only used for share links."""

    base_url: str = ""


# ===== Data fetch =====

@dataclass
class GetDataContext:
    inputs: Dict[str, Any]
    state: CardState
    env: CardEnvironment = field(default_factory=CardEnvironment)
    raw_inputs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GetDataResult:
    view_model: Dict[str, Any]
    state: Optional[CardState] = None
    text_output: Optional[str] = None


GetDataFn = Callable[[GetDataContext], Awaitable[GetDataResult]]


# ===== Actions =====

@dataclass
class ActionContext:
    card_inputs: Dict[str, Any]
    state: CardState
    action_inputs: Dict[str, Any]


@dataclass
class ActionResult:
    state: Optional[CardState] = None
    message: Optional[str] = None
    output: Any = None


ActionHandler = Callable[[ActionContext], Awaitable[ActionResult]]


@dataclass(frozen=True)
class ActionDefinition:
    label: str
    handler: ActionHandler
    description: Optional[str] = None
    inputs: InputSchema = field(default_factory=dict)
    permission: Permission = "auto"

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", MappingProxyType(dict(self.inputs)))


# ===== Webhooks =====

@dataclass
class WebhookContext:
    payload: Dict[str, Any]
    state: CardState


@dataclass
class WebhookResult:
    state: Optional[CardState] = None


WebhookHandler = Callable[[WebhookContext], Awaitable[WebhookResult]]


# ===== Templates =====

@dataclass(frozen=True)
class FunctionTemplate:
    """Template rendered by calling ``fn(view_model)`` synchronously."""

    fn: Callable[[Dict[str, Any]], str]
    kind: Literal["function"] = "function"


@dataclass(frozen=True)
class FileTemplate:
    """Template loaded from ``path`` (relative to the card directory) by the templating engine."""

    path: str
    kind: Literal["file"] = "file"


Template = Union[FunctionTemplate, FileTemplate]

StateKeyFn = Callable[[Mapping[str, Any], Optional[str]], Optional[str]]


@dataclass(frozen=True)
class CardDefinition:
    name: str
    description: str
    get_data: GetDataFn
    template: Template
    inputs: InputSchema = field(default_factory=dict)
    actions: Mapping[str, ActionDefinition] = field(default_factory=dict)
    state_key: Optional[StateKeyFn] = None
    unique_instance: bool = False
    shareable: bool = False
    on_webhook: Optional[WebhookHandler] = None
    card_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("card name is required")
        if not isinstance(self.template, (FunctionTemplate, FileTemplate)):
            raise TypeError(
                f"card '{self.name}' template must be FunctionTemplate or FileTemplate, "
                f"got {type(self.template).__name__}"
            )
        for action_name in self.actions:
            if "__" in action_name:
                raise ValueError(f"action name '{action_name}' must not contain '__'")
        # Read-only views so a registered card cannot be altered in place.
        object.__setattr__(self, "inputs", MappingProxyType(dict(self.inputs)))
        object.__setattr__(self, "actions", MappingProxyType(dict(self.actions)))


# ===== Pipeline outputs =====

@dataclass
class RenderResult:
    markup: str
    new_state: CardState
    text_summary: Optional[str] = None
    raw_data: Optional[Dict[str, Any]] = None
    is_error: bool = False
    share_token: Optional[str] = None


@dataclass
class ActionOutcome:
    new_state: Optional[CardState] = None
    message: Optional[str] = None
    output: Any = None


@dataclass(frozen=True)
class InstanceIdentity:
    instance_id: str
    card_key: str
