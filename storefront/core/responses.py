from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


def envelope(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict:
    payload: dict[str, Any] = {"success": True}
    if message is not None:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    return payload


def list_envelope(items: list, message: Optional[str] = None, **extra: Any) -> dict:
    return envelope(items, message, count=len(items), **extra)


def pagination_block(page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
