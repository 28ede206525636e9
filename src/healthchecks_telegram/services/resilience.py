"""
Retry / backoff / timeout policy for the outbound Telegram transport.

``RetryTransport`` wraps any httpx async transport, so a client built on top
of it issues one logical request while up to ``max_retry_attempts`` extra
physical attempts happen underneath.
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

import httpx

from healthchecks_telegram.settings.defaults import RETRY_STRATEGY_NAME

logger = logging.getLogger(__name__)


class RetryTransport(httpx.AsyncBaseTransport):
    """Retries transport failures, timeouts and non-2xx responses with jittered exponential backoff."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        *,
        max_retry_attempts: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 30.0,
        attempt_timeout: float = 30.0,
        name: str = RETRY_STRATEGY_NAME,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        if max_retry_attempts < 0:
            raise ValueError("max_retry_attempts must be >= 0")
        self._transport = transport or httpx.AsyncHTTPTransport()
        self.max_retry_attempts = max_retry_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.attempt_timeout = attempt_timeout
        self.name = name
        self._sleep = sleep
        self._jitter = jitter

    def compute_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based): base * 2^attempt, scaled by [0.5, 1.5), capped."""
        delay = self.base_delay * (2 ** attempt)
        delay *= 0.5 + self._jitter()
        return min(delay, self.max_delay)

    def worst_case_latency(self) -> float:
        """Upper bound in seconds for one logical request under this policy."""
        attempts = self.max_retry_attempts + 1
        backoff = sum(min(self.base_delay * (2 ** n) * 1.5, self.max_delay) for n in range(self.max_retry_attempts))
        return attempts * self.attempt_timeout + backoff

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        total = self.max_retry_attempts + 1
        for attempt in range(total):
            is_last = attempt == total - 1
            try:
                response = await asyncio.wait_for(
                    self._attempt(request),
                    timeout=self.attempt_timeout,
                )
            except asyncio.TimeoutError:
                if is_last:
                    raise httpx.TimeoutException(
                        f"Attempt timed out after {self.attempt_timeout:.1f}s", request=request
                    ) from None
                reason = "timeout"
            except httpx.TransportError as e:
                if is_last:
                    raise
                reason = f"{type(e).__name__}: {e}"
            else:
                if response.is_success or is_last:
                    return response
                await response.aclose()
                reason = f"HTTP {response.status_code}"

            delay = self.compute_delay(attempt)
            logger.warning(
                f"[{self.name}] {request.method} {request.url.host} failed ({reason}), "
                f"retrying in {delay:.1f}s (attempt {attempt + 1}/{total})"
            )
            await self._sleep(delay)

    async def _attempt(self, request: httpx.Request) -> httpx.Response:
        """One physical attempt: headers and the whole body, so the timeout covers both."""
        response = await self._transport.handle_async_request(request)
        try:
            body = b"".join([chunk async for chunk in response.aiter_raw()])
        finally:
            await response.aclose()
        return httpx.Response(
            response.status_code,
            headers=response.headers,
            stream=httpx.ByteStream(body),
            extensions=response.extensions,
        )

    async def aclose(self) -> None:
        await self._transport.aclose()
