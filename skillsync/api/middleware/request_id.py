"""Request ID middleware: correlates log lines for one HTTP request."""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

log = structlog.get_logger("skillsync.api")

# Probe endpoints are answered without request logging.
_QUIET_PATHS = frozenset({"/health"})


def _request_id(raw: str | None) -> str:
    if raw:
        try:
            return str(uuid.UUID(raw))
        except ValueError:
            pass
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind request_id, method and path into structlog contextvars per request.

    Webhook deliveries already carry a platform delivery id; it is bound as
    well so every handler log line can be traced back to the delivery.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request.headers.get("x-request-id"))
        context = {"request_id": request_id, "method": request.method, "path": request.url.path}
        delivery_id = request.headers.get("x-github-delivery")
        if delivery_id:
            context["delivery_id"] = delivery_id

        quiet = request.url.path in _QUIET_PATHS
        tokens = structlog.contextvars.bind_contextvars(**context)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("http.failed", duration_ms=_elapsed_ms(start))
            raise
        else:
            if not quiet:
                log.info(
                    "http.completed",
                    status_code=response.status_code,
                    duration_ms=_elapsed_ms(start),
                )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.reset_contextvars(**tokens)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)
