from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from storefront.core.config import EXPOSE_ERROR_DETAILS

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Base class for errors raised by the service layer.

    Routers let these propagate; the handlers registered by
    ``register_exception_handlers`` turn them into the JSON envelope.
    """

    status_code = 500

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(StorefrontError):
    status_code = 400


class AuthenticationError(StorefrontError):
    status_code = 401


class NotFoundError(StorefrontError):
    status_code = 404


class InsufficientStockError(ValidationError):
    def __init__(self, available: int) -> None:
        super().__init__(f"Insufficient stock. Only {available} items available.")
        self.available = available


def error_payload(message: str, error: str | None = None) -> dict:
    payload = {"success": False, "message": message}
    if error and EXPOSE_ERROR_DETAILS:
        payload["error"] = error
    return payload


def _format_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        messages.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "; ".join(messages)


async def _storefront_error_handler(_: Request, exc: StorefrontError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc.message, exc.detail))


async def _http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = _format_validation_errors(exc)
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation error", "error": details},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error endpoint=%s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_payload("Internal server error", str(exc)))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, _storefront_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
