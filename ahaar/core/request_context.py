"""Per-request identity carried into log records.

Middleware opens a context for each request; authentication binds the
resolved principal onto it so every log line can name the brand and user.
"""
from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True)
class RequestContext:
    request_id: str | None = None
    brand_id: str | None = None
    user_id: str | None = None
    role: str | None = None

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "brand_id": self.brand_id,
            "user_id": self.user_id,
            "role": self.role,
        }


_EMPTY = RequestContext()
_CONTEXT: ContextVar[RequestContext] = ContextVar("ahaar_request_context", default=_EMPTY)


def current_context() -> RequestContext:
    return _CONTEXT.get()


def begin_request(request_id: str) -> Token:
    return _CONTEXT.set(RequestContext(request_id=request_id))


def bind_identity(*, brand_id: str | None, user_id: str | None, role: str | None) -> None:
    _CONTEXT.set(replace(_CONTEXT.get(), brand_id=brand_id, user_id=user_id, role=role))


def end_request(token: Token) -> None:
    _CONTEXT.reset(token)
