"""Caller context derived from request headers.

The card engine only needs an optional caller id (for per-user state keys) and a
request id for log correlation. Authentication is out of scope: the id is taken
as supplied by the fronting transport.
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional

from fastapi import Header, HTTPException

VALID_USER_PATTERN = re.compile(r"^[A-Za-z0-9_.@:-]{1,128}$")


@dataclass
class CallerContext:
    user_id: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        if self.user_id is not None:
            if not self.user_id:
                self.user_id = None
            elif not VALID_USER_PATTERN.match(self.user_id):
                raise ValueError(f"user_id must match pattern {VALID_USER_PATTERN.pattern}, got: {self.user_id}")
        if not self.request_id:
            raise ValueError("request_id is required")


class CallerContextBuilder:
    """Builder for CallerContext from HTTP headers."""

    @classmethod
    def from_headers(cls, headers: Dict[str, str]) -> CallerContext:
        normalized = {key.lower(): value for key, value in headers.items()}
        kwargs = {"user_id": normalized.get("x-user-id") or None}
        request_id = normalized.get("x-request-id")
        if request_id:
            kwargs["request_id"] = request_id
        return CallerContext(**kwargs)


async def get_caller_context(
    x_user_id: Optional[str] = Header(default=None),
    x_request_id: Optional[str] = Header(default=None),
) -> CallerContext:
    headers: Dict[str, str] = {}
    if x_user_id is not None:
        headers["X-User-Id"] = x_user_id
    if x_request_id is not None:
        headers["X-Request-Id"] = x_request_id
    try:
        return CallerContextBuilder.from_headers(headers)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
