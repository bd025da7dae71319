"""
Async Graph API client with pagination, throttling, retry, and write guarding.
One client instance is the authenticated session shared by every workflow step.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    TRANSIENT_STATUS_CODES,
    RetryPolicy,
    RevocationConfig,
)
from ..errors import (
    GraphAPIError,
    NotFoundError,
    PermissionDeniedError,
    TransientError,
)
from ..safety.guardian import WriteGuard

logger = logging.getLogger("group_revoker.graph")

TokenProvider = Callable[[], str]
Sleeper = Callable[[float], Awaitable[Any]]


def error_details(response: httpx.Response) -> tuple[Optional[str], str]:
    """Extract (code, message) from a Graph error body."""
    try:
        body = response.json() if response.content else {}
    except ValueError:
        body = {}
    error = body.get("error", {}) if isinstance(body, dict) else {}
    if not isinstance(error, dict):
        error = {}
    message = error.get("message") or response.text[:200] or response.reason_phrase
    return error.get("code"), message


def classify_response(response: httpx.Response, url: str) -> GraphAPIError:
    """Map a failed Graph response onto the error taxonomy."""
    status = response.status_code
    code, message = error_details(response)
    if status in TRANSIENT_STATUS_CODES:
        return TransientError(status, message, url, code)
    if status in (401, 403):
        return PermissionDeniedError(status, message, url, code)
    if status == 404:
        return NotFoundError(status, message, url, code)
    return GraphAPIError(status, message, url, code)


class GraphClient:
    """
    Async Microsoft Graph API client.
    Features:
      - Write-guarded requests (only membership removals may write)
      - Automatic pagination with @odata.nextLink
      - Bounded exponential backoff on 429/5xx and network faults
      - Per-request bearer token from a provider, so tokens can be refreshed
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        guardian: WriteGuard,
        retry: Optional[RetryPolicy] = None,
        config: Optional[RevocationConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.token_provider = token_provider
        self.guardian = guardian
        self.retry = retry or RetryPolicy()
        self.config = config or RevocationConfig()
        self._transport = transport
        self._sleep = sleep
        self._request_count = 0
        self._throttle_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def open(self) -> "GraphClient":
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self.config.request_timeout,
                    connect=self.config.connect_timeout,
                ),
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                transport=self._transport,
            )
        return self

    async def aclose(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return await self.open()

    async def __aexit__(self, *args):
        await self.aclose()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def _build_url(self, endpoint: str) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{GRAPH_API_VERSION}/{endpoint}"

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """Execute a single GET request with retry/throttle handling."""
        url = self._build_url(endpoint)
        self.guardian.validate_request("GET", url)
        response = await self._execute_with_retry("GET", url, params=params)
        if not response.content or not response.content.strip():
            return {}
        try:
            body = response.json()
        except ValueError:
            raise GraphAPIError(response.status_code, "Response body is not JSON", url)
        if not isinstance(body, dict):
            raise GraphAPIError(response.status_code, "Response body is not a JSON object", url)
        return body

    async def get_all_pages(
        self,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """Fetch all pages of a paginated endpoint into a list."""
        items = []
        async for item in self.get_all_pages_stream(endpoint, params):
            items.append(item)
        return items

    async def get_all_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> AsyncGenerator[dict, None]:
        """Stream all pages of a paginated endpoint as an async generator."""
        params = dict(params or {})
        if "$top" not in params:
            params["$top"] = str(self.config.page_size)

        url: Optional[str] = self._build_url(endpoint)
        query: Optional[dict] = params
        pages = 0

        while url and pages < self.config.max_pages:
            data = await self.get(url, params=query)

            for item in data.get("value", []):
                yield item

            # nextLink carries every query parameter
            url = data.get("@odata.nextLink")
            query = None
            pages += 1

        if url:
            logger.warning(
                f"Pagination safety cap reached ({self.config.max_pages} pages) "
                f"for endpoint: {endpoint}"
            )

    async def delete(self, endpoint: str) -> None:
        """Execute a guarded DELETE. Raises a GraphAPIError subclass on failure."""
        url = self._build_url(endpoint)
        self.guardian.validate_request("DELETE", url)
        await self._execute_with_retry("DELETE", url)

    async def _execute_with_retry(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """Execute request with exponential backoff on transient failures."""
        attempts = self.retry.max_attempts

        for attempt in range(1, attempts + 1):
            try:
                response = await self._execute_raw(method, url, params=params)
            except httpx.TransportError as e:
                error: GraphAPIError = TransientError(
                    0, f"{type(e).__name__}: {e}", url
                )
                retry_after = None
            else:
                self._request_count += 1
                if response.is_success:
                    return response
                error = classify_response(response, url)
                retry_after = _retry_after_seconds(response)

            if not isinstance(error, TransientError):
                raise error

            if error.status_code == 429:
                self._throttle_count += 1
            if attempt == attempts:
                logger.warning(
                    f"Giving up on {method} {url} after {attempts} attempts: {error.message}"
                )
                raise error

            wait_time = self.retry.delay_for(attempt, random.random())
            if retry_after is not None:
                wait_time = max(retry_after, wait_time)
            logger.warning(
                f"Transient failure ({error.status_code or 'network'}) on {method} {url}. "
                f"Retry {attempt}/{attempts - 1} in {wait_time:.1f}s"
            )
            await self._sleep(wait_time)

        raise AssertionError("unreachable")

    async def _execute_raw(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """Execute raw HTTP request with a fresh bearer token."""
        if not self._client:
            raise RuntimeError("GraphClient not initialized. Use 'async with' or open().")

        headers = {"Authorization": f"Bearer {self.token_provider()}"}
        return await self._client.request(method, url, params=params, headers=headers)

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {
            "total_requests": self._request_count,
            "throttle_events": self._throttle_count,
        }


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        # HTTP-date form; fall back to computed backoff
        return None
