"""
Uniform JSON error envelope.

Every failure leaves the API as

    {"success": false, "error": <message>, "code": <CODE>,
     "timestamp": ..., "path": ..., "method": ...}

with optional ``field``/``details`` and, in development only, ``stack``.
"""
import asyncio
import logging
import math
import re
import traceback
from datetime import datetime
from typing import Any, Optional

import jwt
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from smartlife.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH"]

DEFAULT_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    408: "REQUEST_TIMEOUT",
    413: "REQUEST_TOO_LARGE",
    429: "RATE_LIMIT_EXCEEDED",
    503: "SERVICE_UNAVAILABLE",
}


class APIError(StarletteHTTPException):
    """HTTPException that also carries a machine-readable code."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str,
        field: Optional[str] = None,
        details: Optional[list] = None,
        headers: Optional[dict] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = code
        self.field = field
        self.details = details


def not_found(entity: str) -> APIError:
    code = entity.upper().replace(" ", "_")
    return APIError(404, f"{entity} not found", f"{code}_NOT_FOUND")


def access_denied() -> APIError:
    return APIError(403, "Access denied", "ACCESS_DENIED")


def error_envelope(
    request: Request,
    message: str,
    code: str,
    field: Optional[str] = None,
    details: Optional[list] = None,
    exc: Optional[BaseException] = None,
    **extra: Any,
) -> dict:
    body = {
        "success": False,
        "error": message,
        "code": code,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "path": request.url.path,
        "method": request.method,
    }
    if field:
        body["field"] = field
    if details:
        body["details"] = details
    if exc is not None and settings.is_development:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    body.update(extra)
    return body


def _log_error(request: Request, exc: BaseException, level: int = logging.ERROR) -> None:
    client = request.client.host if request.client else "-"
    logger.log(
        level,
        f"{type(exc).__name__} on {request.method} {request.url.path} from {client}: {exc}",
        exc_info=level >= logging.ERROR,
    )


def _json_safe(value: Any) -> Any:
    """Non-finite floats (JSON 'NaN', 1e400) cannot be sent back as JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def validation_details(errors: list) -> list:
    details = []
    for err in errors:
        # drop the leading "body"/"query"/"path" segment
        loc = [str(p) for p in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        details.append({
            "field": ".".join(loc) or None,
            "message": err.get("msg"),
            "value": _json_safe(err.get("input")),
        })
    return details


_DUPLICATE_PATTERNS = [
    re.compile(r"UNIQUE constraint failed: \w+\.(\w+)"),   # sqlite
    re.compile(r"Key \((\w+)\)=\("),                         # postgres
]


def duplicate_field(exc: IntegrityError) -> Optional[str]:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in _DUPLICATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = getattr(exc, "code", None)
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    extra = {}

    if code is None:
        if exc.status_code == 404:
            code, message = "ROUTE_NOT_FOUND", "Route not found"
        elif exc.status_code == 405:
            code, message = "METHOD_NOT_ALLOWED", "Method not allowed"
            extra["allowedMethods"] = ALLOWED_METHODS
        else:
            code = DEFAULT_CODES.get(exc.status_code, "INTERNAL_ERROR")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(
            request,
            message,
            code,
            field=getattr(exc, "field", None),
            details=getattr(exc, "details", None),
            **extra,
        ),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope(
            request,
            "Validation failed",
            "VALIDATION_ERROR",
            details=jsonable_encoder(validation_details(exc.errors())),
        ),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    _log_error(request, exc, logging.WARNING)
    field = duplicate_field(exc)
    if field:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_envelope(request, f"{field} already exists", "DUPLICATE_FIELD", field=field),
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope(request, "Integrity constraint violated", "INTEGRITY_ERROR"),
    )


async def token_error_handler(request: Request, exc: jwt.InvalidTokenError) -> JSONResponse:
    if isinstance(exc, jwt.ExpiredSignatureError):
        message, code = "Token expired", "TOKEN_EXPIRED"
    else:
        message, code = "Invalid token", "INVALID_TOKEN"
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=error_envelope(request, message, code),
    )


async def timeout_error_handler(request: Request, exc: asyncio.TimeoutError) -> JSONResponse:
    _log_error(request, exc, logging.WARNING)
    return JSONResponse(
        status_code=status.HTTP_408_REQUEST_TIMEOUT,
        content=error_envelope(
            request,
            "Request timeout",
            "REQUEST_TIMEOUT",
            timeout=int(settings.REQUEST_TIMEOUT_SECONDS * 1000),
        ),
    )


async def connection_error_handler(request: Request, exc: ConnectionRefusedError) -> JSONResponse:
    _log_error(request, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_envelope(request, "Service temporarily unavailable", "SERVICE_UNAVAILABLE", exc=exc),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    _log_error(request, exc)
    message = str(exc) if settings.is_development and str(exc) else "Internal server error"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(request, message, "INTERNAL_ERROR", exc=exc),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(jwt.InvalidTokenError, token_error_handler)
    app.add_exception_handler(asyncio.TimeoutError, timeout_error_handler)
    app.add_exception_handler(ConnectionRefusedError, connection_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
