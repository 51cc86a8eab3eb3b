"""Async GitHub API client with page-at-a-time listing, rate-limit errors, and retries."""

from __future__ import annotations

import asyncio
import os
import time
from typing import Any

import httpx
import structlog

from skillsync.services import AuthenticationError, ExternalServiceError, RateLimitError

log = structlog.get_logger("skillsync.engine")

_DEFAULT_API_URL = "https://api.github.com"

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds

PER_PAGE_MAX = 100


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    Rate-limit responses are never slept on here: they surface as
    :class:`RateLimitError` carrying the computed wait so the caller decides
    whether to abort or sleep and resume.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        token_type: str = "token",
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"{token_type} {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or os.environ.get("SKILLSYNC_GITHUB_API_URL", _DEFAULT_API_URL),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Single GET, returns parsed JSON."""
        response = await self._request_with_retry("GET", path, params=params)
        return response.json()

    async def get_optional(self, path: str, params: dict[str, Any] | None = None) -> Any | None:
        """Like :meth:`get` but returns None when the resource does not exist."""
        try:
            return await self.get(path, params)
        except ExternalServiceError as exc:
            if exc.status_code == 404:
                return None
            raise

    async def get_page(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        page: int = 1,
        per_page: int = PER_PAGE_MAX,
        items_key: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch one page of a list endpoint.

        Callers drive pagination themselves and stop once a page comes back
        shorter than *per_page*. *items_key* unwraps envelope responses such
        as ``/installation/repositories`` (``repositories``) or
        ``/search/issues`` (``items``).
        """
        query = dict(params or {})
        query["page"] = page
        query["per_page"] = min(per_page, PER_PAGE_MAX)
        data = await self.get(path, query)
        if items_key is not None:
            data = data.get(items_key, []) if isinstance(data, dict) else []
        if not isinstance(data, list):
            raise ExternalServiceError(f"expected a list from {path}")
        return data

    async def post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        response = await self._request_with_retry("POST", path, json=json)
        return response.json()

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send with exponential backoff on 5xx and timeout errors."""
        last_error: str = ""
        last_status: int | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.request(method, url, params=params, json=json)

                if resp.status_code in (403, 429) and self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    log.warning("github.rate_limit", url=url, retry_after=wait)
                    raise RateLimitError(wait)

                if resp.status_code == 401:
                    raise AuthenticationError("github rejected the credential")

                if resp.status_code < 400:
                    return resp

                if resp.status_code < 500:
                    raise ExternalServiceError(
                        f"github {method} {url} failed: {resp.status_code}",
                        status_code=resp.status_code,
                    )

                # 5xx, retry
                log.warning(
                    "github.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_error = f"github {method} {url} failed: {resp.status_code}"
                last_status = resp.status_code
            except httpx.TimeoutException:
                log.warning(
                    "github.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_error = f"github {method} {url} timed out"
                last_status = None

            if attempt < _MAX_RETRIES - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise ExternalServiceError(last_error, status_code=last_status)

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403/429 response is due to rate limiting."""
        if response.status_code == 429:
            return True
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # secondary rate limits only carry Retry-After
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Calculate how long to wait based on rate-limit headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60  # conservative fallback
