"""
Shared outbound HTTP client. One httpx.AsyncClient per process, injected into the geocoder,
the forecast client and the intent extractor so every provider call gets the same policy:
fixed timeout, retry only on connection failure or 5xx, capped retries, exponential backoff.
4xx responses are never retried.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from app.config import Settings

logger = logging.getLogger(__name__)


class RetryTransport(httpx.AsyncBaseTransport):
    """Wraps another transport; delay before retry n (1-based) is backoff_base_sec * 2**n."""

    def __init__(
        self,
        wrapped: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 2,
        backoff_base_sec: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._wrapped = wrapped or httpx.AsyncHTTPTransport()
        self.max_retries = max_retries
        self.backoff_base_sec = backoff_base_sec
        self._sleep = sleep

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        attempt = 0
        while True:
            try:
                response = await self._wrapped.handle_async_request(request)
            except httpx.TransportError as exc:
                if attempt >= self.max_retries:
                    logger.error("HTTP %s %s exhausted retries: %s", request.method, request.url, exc)
                    raise
                reason = type(exc).__name__
            else:
                if response.status_code < 500 or attempt >= self.max_retries:
                    return response
                await response.aclose()
                reason = f"HTTP {response.status_code}"

            attempt += 1
            delay = self.backoff_base_sec * 2 ** attempt
            logger.warning(
                "HTTP %s %s failed (%s); retry %d/%d in %.1fs",
                request.method, request.url.host, reason, attempt, self.max_retries, delay,
            )
            await self._sleep(delay)

    async def aclose(self) -> None:
        await self._wrapped.aclose()


def build_http_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build the process-wide client. transport replaces the network layer (tests use httpx.MockTransport)."""
    return httpx.AsyncClient(
        transport=RetryTransport(
            wrapped=transport,
            max_retries=settings.http_max_retries,
            backoff_base_sec=settings.http_backoff_base_sec,
        ),
        timeout=settings.http_timeout_sec,
        headers={"User-Agent": settings.http_user_agent},
        follow_redirects=True,
    )
