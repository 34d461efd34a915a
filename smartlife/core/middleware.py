import asyncio
import logging
import math
import re
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from smartlife.core.config import settings
from smartlife.core.errors import error_envelope

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("smartlife.access")

SIZE_UNITS = {
    "b": 1,
    "kb": 1024,
    "mb": 1024 * 1024,
    "gb": 1024 * 1024 * 1024,
}

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)$")


def parse_size(size: str) -> int:
    """'10mb' -> bytes. Unparseable sizes fall back to 1MB."""
    match = _SIZE_RE.match(size.strip().lower())
    if not match:
        return 1024 * 1024
    value, unit = match.groups()
    return int(float(value) * SIZE_UNITS[unit])


def format_bytes(num: int) -> str:
    if num <= 0:
        return "0 Bytes"
    sizes = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(num, 1024))), len(sizes) - 1)
    value = round(num / math.pow(1024, i), 2)
    return f"{value:g} {sizes[i]}"


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Refuses bodies above ``max_size`` with 413.

    A declared ``Content-Length`` is checked up front. Without one (chunked
    uploads) the body is read here, counting bytes, and handed on to the
    route once it is known to fit.
    """

    def __init__(self, app, max_size: str = "10mb"):
        super().__init__(app)
        self.max_size = max_size
        self.max_bytes = parse_size(max_size)

    def _too_large(self, request: Request, actual: int) -> JSONResponse:
        logger.warning(f"Refused {format_bytes(actual)} body on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=413,
            content=error_envelope(
                request,
                "Request entity too large",
                "REQUEST_TOO_LARGE",
                maxSize=self.max_size,
                actualSize=format_bytes(actual),
            ),
        )

    async def dispatch(self, request: Request, call_next):
        declared = request.headers.get("content-length", "")
        if declared.isdigit():
            if int(declared) > self.max_bytes:
                return self._too_large(request, int(declared))
            return await call_next(request)

        received = 0
        chunks = []
        async for chunk in request.stream():
            received += len(chunk)
            if received > self.max_bytes:
                return self._too_large(request, received)
            chunks.append(chunk)
        # cached body is what the route reads downstream
        request._body = b"".join(chunks)
        return await call_next(request)


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, timeout_seconds: float = 30.0):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Request timed out after {self.timeout_seconds}s: {request.method} {request.url.path}")
            return JSONResponse(
                status_code=408,
                content=error_envelope(
                    request,
                    "Request timeout",
                    "REQUEST_TIMEOUT",
                    timeout=int(self.timeout_seconds * 1000),
                ),
            )


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        client = request.client.host if request.client else "-"
        access_logger.info(
            f'{client} "{request.method} {request.url.path}" {response.status_code} {elapsed_ms:.1f}ms'
        )
        return response


def install_request_middleware(app) -> None:
    """Outermost first: access log, size limit, timeout."""
    app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
    app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.MAX_REQUEST_SIZE)
    app.add_middleware(AccessLogMiddleware)
