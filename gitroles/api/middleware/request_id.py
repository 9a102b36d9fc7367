"""Request ID middleware — binds a request id to every log line of a request."""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

log = structlog.get_logger("gitroles.api")

HEADER = "X-Request-ID"


def _request_id_from(request: Request) -> str:
    raw = request.headers.get(HEADER.lower(), "")
    try:
        return str(uuid.UUID(raw))
    except ValueError:
        return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse a valid incoming ``X-Request-ID`` or mint one, and echo it back."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id_from(request)
        tokens = structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("http.request_failed", duration_ms=_elapsed_ms(start))
            raise
        else:
            log.info(
                "http.request",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(start),
            )
            response.headers[HEADER] = request_id
            return response
        finally:
            structlog.contextvars.reset_contextvars(**tokens)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)
