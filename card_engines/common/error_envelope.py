"""Canonical error envelope for all card engine responses.

Standardized structure:
{
  "error": {
    "code": "string",
    "message": "string",
    "http_status": 400,
    "card_name": "string | null",
    "action_name": "string | null",
    "details": {}
  }
}
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field

from card_engines.cards.errors import CardEngineError, CardInputError


class ErrorDetail(BaseModel):
    """Canonical error detail structure."""
    code: str
    message: str
    http_status: int
    card_name: Optional[str] = None
    action_name: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorEnvelope(BaseModel):
    """Top-level error envelope returned by every endpoint."""
    error: ErrorDetail


def build_error_envelope(
    code: str,
    message: str,
    status_code: int = 400,
    card_name: Optional[str] = None,
    action_name: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorEnvelope:
    """Construct an ErrorEnvelope (without raising)."""
    error_detail = ErrorDetail(
        code=code,
        message=message,
        http_status=status_code,
        card_name=card_name,
        action_name=action_name,
        details=details or {},
    )
    return ErrorEnvelope(error=error_detail)


def envelope_from_card_error(exc: CardEngineError) -> ErrorEnvelope:
    details: Dict[str, Any] = {}
    if isinstance(exc, CardInputError):
        details["missing"] = exc.missing
    return build_error_envelope(
        code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        card_name=exc.card_name,
        action_name=exc.action_name,
        details=details,
    )


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    card_name: Optional[str] = None,
    action_name: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    """Construct and raise a standardized error response.

    Args:
        code: Machine-readable error code (e.g., "card.unknown_card")
        message: Human-readable error message
        status_code: HTTP status code (default 400)
        card_name: The card being addressed
        action_name: The action being attempted
        details: Additional context dict

    Returns:
        HTTPException with canonical error envelope body
    """
    envelope = build_error_envelope(
        code=code,
        message=message,
        status_code=status_code,
        card_name=card_name,
        action_name=action_name,
        details=details,
    )
    raise HTTPException(status_code=status_code, detail=envelope.model_dump())
