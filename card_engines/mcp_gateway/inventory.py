from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, Field

from card_engines.common.identity import CallerContext


# --- Tool result content blocks ---

class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    type: Literal["image"] = "image"
    data: str  # base64
    mimeType: str = "image/png"


class MarkupResource(BaseModel):
    uri: str
    mimeType: str = "text/html"
    text: str


class MarkupContent(BaseModel):
    type: Literal["resource"] = "resource"
    resource: MarkupResource


ContentBlock = Union[TextContent, ImageContent, MarkupContent]


class ToolResult(BaseModel):
    content: List[ContentBlock] = Field(default_factory=list)
    isError: bool = False
    structuredContent: Optional[Dict[str, Any]] = None


OperationHandler = Callable[[CallerContext, Dict[str, Any]], Awaitable[ToolResult]]


@dataclass
class CardOperation:
    """Callable-operation descriptor derived from a card or one of its actions."""

    name: str  # "do-poll" or "do-poll__vote"
    description: str
    parameters: Dict[str, Any]
    handler: OperationHandler
    input_model: Type[BaseModel]
    card_name: str
    action_name: Optional[str] = None
    annotations: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameters,
            "annotations": self.annotations,
        }


class OperationInventory:
    def __init__(self) -> None:
        self._operations: Dict[str, CardOperation] = {}

    def register(self, operation: CardOperation) -> None:
        if operation.name in self._operations:
            raise ValueError(f"Operation '{operation.name}' is already registered")
        self._operations[operation.name] = operation

    def clear(self) -> None:
        """Resets the inventory, clearing all registered operations."""
        self._operations.clear()

    def get(self, name: str) -> Optional[CardOperation]:
        return self._operations.get(name)

    def list_operations(self) -> List[CardOperation]:
        return list(self._operations.values())

    def for_card(self, card_name: str) -> List[CardOperation]:
        return [op for op in self._operations.values() if op.card_name == card_name]
