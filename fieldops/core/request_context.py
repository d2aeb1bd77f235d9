"""Per-request log context.

The observability middleware binds one :class:`RequestContext` per request.
Sync dependencies run in worker threads on a copy of the context variables,
so they fill in the bound object in place instead of setting new values.
"""
from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class RequestContext:
    request_id: Optional[str] = None
    user_id: Optional[int] = None
    company_id: Optional[int] = None
    god_mode: bool = False

    def log_fields(self) -> Dict[str, Any]:
        company = self.company_id
        if company is None and self.god_mode:
            company = "god_mode"
        return {"request_id": self.request_id, "user_id": self.user_id, "company_id": company}


_CURRENT: ContextVar[Optional[RequestContext]] = ContextVar("fieldops_request_context", default=None)


def bind_request_context(request_id: str) -> Token:
    return _CURRENT.set(RequestContext(request_id=request_id))


def reset_request_context(token: Token) -> None:
    _CURRENT.reset(token)


def current_request_context() -> Optional[RequestContext]:
    return _CURRENT.get()


def update_request_context(**fields: Any) -> None:
    """Fill in fields on the bound context; a no-op outside a request."""
    context = _CURRENT.get()
    if context is None:
        return
    for name, value in fields.items():
        if not hasattr(context, name):
            raise AttributeError(f"RequestContext has no field {name!r}")
        setattr(context, name, value)
