"""
HTTP fetching with timeouts, linear backoff and rate limiting.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
import logging

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from wordmap.core.errors import (
    AuthError,
    FetchError,
    TransientFetchError,
)
from wordmap.services.ingestion.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class FetchedPayload:
    """Body of a successful fetch."""
    url: str
    status_code: int
    text: str
    latency_ms: float
    attempts: int


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.transient


class RetryingFetcher:
    """
    Wraps a single HTTP GET with retries.

    Failed attempts (network errors, timeouts, non-2xx statuses, empty bodies
    and payloads rejected by ``validate``) are retried after
    ``base_delay * attempt_number`` seconds until ``max_attempts`` is reached;
    the last error is then re-raised. Authorization failures are never retried
    here, the credential layer decides what to do with them.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        max_attempts: int = 3,
        base_delay: float = 5.0,
        timeout: float = 30.0,
        user_agent: str = "WordmapZeitgeist/1.0",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self.rate_limiter = rate_limiter
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.timeout = timeout
        self.user_agent = user_agent
        self._sleep = sleep

    async def fetch(
        self,
        url: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        rate_key: Optional[str] = None,
        validate: Optional[Callable[[str], None]] = None,
    ) -> FetchedPayload:
        """
        Fetch ``url`` and return its body.

        Args:
            url: Absolute URL to GET
            headers: Extra request headers
            params: Query parameters
            timeout: Per-attempt timeout in seconds (defaults to the fetcher's)
            rate_key: Source id to gate each attempt through the rate limiter
            validate: Structural check on the body; raise StructuralParseError to retry

        Raises:
            FetchError: after the final failed attempt
        """
        request_headers = {"User-Agent": self.user_agent}
        if headers:
            request_headers.update(headers)
        timeout = timeout if timeout is not None else self.timeout

        def log_retry(retry_state: RetryCallState):
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                f"Fetch attempt {retry_state.attempt_number}/{self.max_attempts} "
                f"for {url} failed: {exc}; retrying in {wait:.1f}s"
            )

        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.base_delay, increment=self.base_delay),
            retry=retry_if_exception(_is_transient),
            before_sleep=log_retry,
            reraise=True,
        )

        attempts = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    return await self._attempt(
                        url, request_headers, params, timeout, rate_key, validate, attempts
                    )
        except FetchError as e:
            logger.error(f"Giving up on {url} after {attempts} attempt(s): {e}")
            raise

    async def _attempt(
        self,
        url: str,
        headers: dict[str, str],
        params: Optional[dict[str, Any]],
        timeout: float,
        rate_key: Optional[str],
        validate: Optional[Callable[[str], None]],
        attempt_number: int,
    ) -> FetchedPayload:
        """Issue one request and classify its outcome."""
        if rate_key and self.rate_limiter:
            await self.rate_limiter.acquire(rate_key)

        start = time.perf_counter()
        try:
            if self._client is not None:
                response = await self._client.get(
                    url, headers=headers, params=params, timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise TransientFetchError(f"Timed out after {timeout:.0f}s: {e}") from e
        except httpx.HTTPError as e:
            raise TransientFetchError(f"HTTP error: {e}") from e

        latency_ms = (time.perf_counter() - start) * 1000

        if response.status_code in (401, 403):
            raise AuthError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        if not response.is_success:
            raise TransientFetchError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        text = response.text
        if not text or not text.strip():
            raise TransientFetchError("Empty response body: no usable content", response.status_code)

        if validate is not None:
            validate(text)

        return FetchedPayload(
            url=str(response.url),
            status_code=response.status_code,
            text=text,
            latency_ms=latency_ms,
            attempts=attempt_number,
        )
