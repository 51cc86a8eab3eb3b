"""Maps the ServiceError hierarchy and request validation errors to JSON envelopes."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from skillsync.dao.base import InvalidCursorError
from skillsync.services import (
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ServiceError,
    ValidationError,
)

log = structlog.get_logger("skillsync.api")

_STATUS_MAP: dict[type[ServiceError], int] = {
    NotFoundError: 404,
    ConflictError: 409,
    ValidationError: 422,
    AuthenticationError: 401,
    PermissionDeniedError: 403,
    RateLimitError: 429,
    ExternalServiceError: 502,
}


def _envelope(status: int, detail: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"success": False, "detail": detail},
        headers=headers,
    )


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status = 500
    for cls in type(exc).__mro__:
        if cls in _STATUS_MAP:
            status = _STATUS_MAP[cls]
            break
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
        log.warning("api.rate_limited", path=request.url.path, retry_after=exc.retry_after)
    elif isinstance(exc, ExternalServiceError):
        log.warning(
            "api.upstream_error", path=request.url.path, upstream_status=exc.status_code
        )
    elif status == 500:
        log.error("api.unmapped_service_error", path=request.url.path, error=type(exc).__name__)
    return _envelope(status, str(exc), headers)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    messages = []
    for err in errors:
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    return _envelope(422, "; ".join(messages))


async def _invalid_cursor_handler(
    _request: Request, exc: InvalidCursorError
) -> JSONResponse:
    return _envelope(422, str(exc))


def register_error_handlers(app: FastAPI) -> None:
    """Register exception handlers on the app."""
    app.add_exception_handler(ServiceError, _service_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidCursorError, _invalid_cursor_handler)  # type: ignore[arg-type]
