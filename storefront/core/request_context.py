"""Values stamped on every log line emitted while a request is in flight."""
from __future__ import annotations

from contextvars import ContextVar
from typing import Optional

CONTEXT_FIELDS = ("request_id", "user_id")

_context: ContextVar[Optional[dict[str, str]]] = ContextVar("storefront_request_context", default=None)


def set_request_context(**values: Optional[str]) -> None:
    unknown = set(values) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown request context fields: {sorted(unknown)}")
    merged = dict(_context.get() or {})
    merged.update({key: value for key, value in values.items() if value is not None})
    _context.set(merged)


def _lookup(field: str) -> Optional[str]:
    return (_context.get() or {}).get(field)


def get_request_id() -> Optional[str]:
    return _lookup("request_id")


def get_user_id() -> Optional[str]:
    return _lookup("user_id")


def clear_request_context() -> None:
    _context.set(None)
