"""Card engine error hierarchy.

Each error carries a machine-readable ``error_code`` and the HTTP status the
transport boundary should map it to.
"""
from __future__ import annotations

from typing import Iterable, List, Optional


class CardEngineError(Exception):
    error_code = "card.error"
    status_code = 500

    def __init__(
        self,
        message: str,
        card_name: Optional[str] = None,
        action_name: Optional[str] = None,
    ) -> None:
        self.message = message
        self.card_name = card_name
        self.action_name = action_name
        super().__init__(message)


class CardInputError(CardEngineError):
    """Required inputs missing after defaults were applied."""

    error_code = "card.validation_error"
    status_code = 400

    def __init__(self, missing: Iterable[str], card_name: Optional[str] = None, action_name: Optional[str] = None):
        self.missing: List[str] = list(missing)
        plural = "s" if len(self.missing) > 1 else ""
        target = f' for "{card_name}"' if card_name else ""
        super().__init__(
            f"Missing required input{plural}{target}: {', '.join(self.missing)}",
            card_name=card_name,
            action_name=action_name,
        )


class UnknownOperationError(CardEngineError):
    error_code = "card.unknown_operation"
    status_code = 404


class UnknownCardError(UnknownOperationError):
    error_code = "card.unknown_card"

    def __init__(self, card_name: str) -> None:
        super().__init__(f"Card not found: {card_name}", card_name=card_name)


class UnknownActionError(UnknownOperationError):
    error_code = "card.unknown_action"

    def __init__(self, card_name: str, action_name: str) -> None:
        super().__init__(
            f'Action "{action_name}" not found on card "{card_name}"',
            card_name=card_name,
            action_name=action_name,
        )


class DataFetchError(CardEngineError):
    """Raised by the pipeline internally; always recovered into an error render."""

    error_code = "card.data_fetch_failed"
    status_code = 502


class CardTemplateError(CardEngineError):
    """Template failed to load or render. Authoring defect, never recovered."""

    error_code = "card.template_error"
    status_code = 500


class CardActionError(CardEngineError):
    error_code = "card.action_failed"
    status_code = 500


class StateStoreError(CardEngineError):
    """State backend unavailable or failed."""

    error_code = "card.state_store_unavailable"
    status_code = 503
