"""Exception handlers that render every failure as one JSON envelope.

    {
        "code": "webhook_error",
        "message": "Webhook Error: No signatures found matching the expected signature for payload",
        "details": null,
        "request_id": "uuid"
    }
"""
from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from saaskit.services.billing.errors import WebhookError

logger = logging.getLogger(__name__)


def _get_request_id(request: Request) -> str:
    """Request id assigned by ObservabilityMiddleware."""
    return getattr(request.state, "request_id", "unknown")


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: object = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "code": code,
            "message": message,
            "details": details,
            "request_id": _get_request_id(request),
        },
    )


def _unpack_http_detail(exc: HTTPException) -> tuple[str, str, object]:
    code = f"http_{exc.status_code}"
    detail = exc.detail
    if isinstance(detail, dict):
        return (
            detail.get("code", code),
            detail.get("message", "Request failed"),
            detail.get("details"),
        )
    if isinstance(detail, str):
        return code, detail, None
    return code, "Request failed", detail


def register_error_handlers(app: object) -> None:
    @app.exception_handler(WebhookError)  # type: ignore[arg-type]
    async def webhook_exception_handler(
        request: Request, exc: WebhookError
    ) -> JSONResponse:
        logger.warning(
            "Webhook rejected (%s): %s",
            exc.code,
            exc,
            extra={"request_id": _get_request_id(request)},
        )
        return error_response(request, exc.status_code, exc.code, str(exc))

    @app.exception_handler(HTTPException)  # type: ignore[arg-type]
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        code, message, details = _unpack_http_detail(exc)
        return error_response(request, exc.status_code, code, message, details)

    @app.exception_handler(RequestValidationError)  # type: ignore[arg-type]
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning(
            "Validation error on %s %s: %s",
            request.method,
            request.url.path,
            exc.errors(),
            extra={"request_id": _get_request_id(request)},
        )
        return error_response(
            request, 422, "validation_error", "Validation error", exc.errors()
        )

    @app.exception_handler(Exception)  # type: ignore[arg-type]
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _get_request_id(request)},
        )
        return error_response(request, 500, "internal_error", "Internal server error")
