"""Service layer — business logic orchestration."""


class ServiceError(Exception):
    """Base service exception."""


class NotFoundError(ServiceError):
    """Resource not found (-> HTTP 404)."""


class ConflictError(ServiceError):
    """Business rule conflict (-> HTTP 409)."""


class ValidationError(ServiceError):
    """Input validation or malformed payload (-> HTTP 422)."""


class AuthenticationError(ServiceError):
    """Authentication failure (-> HTTP 401)."""


class RateLimitError(ServiceError):
    """Platform rate limit exhausted (-> HTTP 429).

    ``retry_after`` is the number of seconds until the budget resets.
    """

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message or f"rate limit exceeded, retry after {retry_after}s")


class ExternalServiceError(ServiceError):
    """Non rate-limit failure from the code-hosting platform (-> HTTP 502)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class PermissionDeniedError(ServiceError):
    """Authenticated but not allowed (-> HTTP 403)."""
