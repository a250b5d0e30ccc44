from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

from storefront.core.config import LOG_LEVEL, SQL_LOG_LEVEL
from storefront.core.request_context import get_request_id, get_user_id

# Applied to the rendered message; the captured group keeps the key visible
_SECRET_KEYS = ("cookie", "session(?:_id)?", "password", "secret")
_SENSITIVE_PATTERNS = [re.compile(rf"({key}\s*[:=]\s*)([^\s\",;}}]+)", re.IGNORECASE) for key in _SECRET_KEYS]

# Optional attributes passed through ``extra=`` by the services and middleware
_EXTRA_FIELDS = ("endpoint", "method", "status_code", "order_id", "product_id", "coupon_code")


def mask_secrets(value: str) -> str:
    for pattern in _SENSITIVE_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return value


class JsonFormatter(logging.Formatter):
    """One JSON object per line, enriched with the current request context."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": mask_secrets(record.getMessage()),
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "user_id": getattr(record, "user_id", None) or get_user_id(),
            "duration_ms": getattr(record, "duration_ms", None),
        }
        payload.update(
            {field: getattr(record, field) for field in _EXTRA_FIELDS if getattr(record, field, None) is not None}
        )
        if record.exc_info:
            payload["exc_info"] = mask_secrets(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    level = (level or LOG_LEVEL).upper()

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(SQL_LOG_LEVEL)
