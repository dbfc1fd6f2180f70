from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.services.errors import AdmissionError

logger = logging.getLogger(__name__)

STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    422: "validation_error",
    429: "rate_limited",
}

REQUEST_SECTIONS = {"body", "query", "path", "header", "cookie"}


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Render the failure envelope shared by every error handler."""
    body = {"code": code, "message": message, "data": None, "details": details or {}}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def field_errors(errors: list[dict[str, Any]]) -> dict[str, str]:
    """One message per field, keyed by dotted location without the request section."""
    collapsed: dict[str, str] = {}
    for error in errors:
        parts = [str(part) for part in error.get("loc") or () if part not in REQUEST_SECTIONS]
        field = ".".join(parts) or "request"
        if field in collapsed:
            continue
        msg = str(error.get("msg") or "Invalid value")
        collapsed[field] = msg.removeprefix("Value error, ")
    return collapsed


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = STATUS_CODES.get(exc.status_code, "http_error")
    detail = exc.detail
    if isinstance(detail, dict):
        message = str(detail.get("message") or _status_phrase(exc.status_code))
        code = str(detail.get("code") or code)
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
    else:
        message = str(detail) if detail else _status_phrase(exc.status_code)
        details = {}
    return error_response(exc.status_code, code, message, details, getattr(exc, "headers", None))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = field_errors(exc.errors())
    if errors:
        field, msg = next(iter(errors.items()))
        message = f"{field}: {msg}"
    else:
        message = "Validation failed"
    return error_response(422, "validation_error", message, {"errors": errors})


async def admission_exception_handler(request: Request, exc: AdmissionError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("Request %s %s failed: %s", request.method, request.url.path, exc.code)
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(
        429,
        "rate_limited",
        "Too many attempts, please wait and try again",
        {"limit": str(exc.detail)},
        getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "internal_server_error", "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(AdmissionError, admission_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
