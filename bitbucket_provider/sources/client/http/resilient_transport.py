"""
Resilient HTTP transport.
Combines rate limiting and retry logic at the transport layer.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

import httpx
from aiolimiter import AsyncLimiter

from bitbucket_provider.config.constants.http_status_code import RETRYABLE_STATUS_CODES
from bitbucket_provider.config.constants.service import PipelineDefaults
from bitbucket_provider.sources.client.http.read_context import (
    CANCELLATION_EXTENSION,
    LOGGER_EXTENSION,
)
from bitbucket_provider.utils.redaction import redact_headers, redact_url


class ResilientHTTPTransport(httpx.AsyncHTTPTransport):
    """
    HTTP transport with optional rate limiting and retry logic.

    Key features:
    - Rate limiting is optional (only applied if rate_limiter is provided)
    - Rate limits ONCE per logical request (not per retry attempt)
    - Retries on 408, 429, 500, 502, 503 and 504 only; every other status,
      and every network error, goes straight back to the caller
    - A numeric Retry-After header replaces the jittered delay, clamped to max_delay
    - Uses exponential backoff with full jitter
    - Checks the read's cancellation handle before each attempt and each sleep

    Args:
        rate_limiter: Optional AsyncLimiter
        max_retries: Retries after the first attempt (default: 4, so 5 attempts)
        base_delay: Initial delay for exponential backoff in seconds (default: 0.25)
        max_delay: Maximum delay cap in seconds (default: 8.0)
        logger: Fallback logger when the request does not carry one
        wrapped: Optional transport to send through instead of the network
            (used with httpx.MockTransport in tests)
        sleep: Coroutine used for backoff waits
        jitter: Callable drawing a delay from [low, high]
    """

    def __init__(
        self,
        rate_limiter: Optional[AsyncLimiter] = None,
        max_retries: int = PipelineDefaults.MAX_ATTEMPTS - 1,
        base_delay: float = PipelineDefaults.BASE_DELAY,
        max_delay: float = PipelineDefaults.MAX_DELAY,
        logger: Optional[logging.Logger] = None,
        wrapped: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
        **kwargs
    ) -> None:
        # Validate max_retries
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError(f"max_retries must be a non-negative integer, got: {max_retries}")

        # Validate base_delay
        if not isinstance(base_delay, (int, float)) or base_delay < 0:
            raise ValueError(f"base_delay must be a non-negative number, got: {base_delay}")

        # Validate max_delay
        if not isinstance(max_delay, (int, float)) or max_delay < 0:
            raise ValueError(f"max_delay must be a non-negative number, got: {max_delay}")

        # Validate max_delay >= base_delay
        if max_delay < base_delay:
            raise ValueError(f"max_delay ({max_delay}) must be >= base_delay ({base_delay})")

        super().__init__(**kwargs)
        self.rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.logger = logger or logging.getLogger(__name__)
        self.wrapped = wrapped
        self._sleep = sleep
        self._jitter = jitter

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def _should_retry(self, response: httpx.Response, attempt: int) -> bool:
        """
        Check if a request that returned a response should be retried based on its status code.

        Args:
            response: The response of the attempt
            attempt: Current attempt number (0-indexed)

        Returns:
            True if the request should be retried, False otherwise.
        """
        if attempt >= self.max_retries:
            return False
        return response.status_code in RETRYABLE_STATUS_CODES

    def _calculate_delay(self, response: Optional[httpx.Response], attempt: int) -> float:
        """
        Calculate retry delay using exponential backoff with full jitter.
        Prioritizes Retry-After header if present.

        Args:
            response: The retryable response, or None
            attempt: Current attempt number
        """
        # Priority 1: Retry-After header
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    return min(self.max_delay, max(0.0, float(retry_after)))
                except ValueError:
                    pass  # Header is date string, fallback to backoff

        # Priority 2: Exponential backoff with full jitter
        exponential = min(self.max_delay, self.base_delay * (2 ** attempt))
        return self._jitter(0, exponential)

    async def _send(self, request: httpx.Request) -> httpx.Response:
        if self.wrapped is not None:
            return await self.wrapped.handle_async_request(request)
        return await super().handle_async_request(request)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """
        Handle HTTP request with optional rate limiting and retry logic.

        Rate limiting (if configured) happens ONCE per logical request (outside retry loop).
        This prevents token exhaustion during retry storms.
        """
        cancellation = request.extensions.get(CANCELLATION_EXTENSION)
        logger = request.extensions.get(LOGGER_EXTENSION) or self.logger
        safe_url = redact_url(str(request.url))
        safe_headers = redact_headers(dict(request.headers))

        # Apply rate limiting if configured (ONCE per logical request)
        if self.rate_limiter:
            await self.rate_limiter.acquire()

        attempt = 0
        while True:
            if cancellation is not None:
                cancellation.raise_if_cancelled()

            try:
                response = await self._send(request)
            except httpx.TransportError as e:
                logger.debug(
                    f"{request.method} {safe_url} attempt={attempt + 1}/{self.max_attempts} "
                    f"error={type(e).__name__} headers={safe_headers}"
                )
                raise

            logger.debug(
                f"{request.method} {safe_url} attempt={attempt + 1}/{self.max_attempts} "
                f"status={response.status_code} headers={safe_headers}"
            )

            if not self._should_retry(response, attempt):
                if response.status_code in RETRYABLE_STATUS_CODES and self.max_retries > 0:
                    logger.error(
                        f"Request failed after {self.max_attempts} attempts with HTTP {response.status_code}"
                    )
                return response

            delay = self._calculate_delay(response, attempt)
            await response.aclose()
            logger.warning(
                f"HTTP {response.status_code} (Attempt {attempt + 1}/{self.max_attempts}). "
                f"Retrying in {delay:.2f}s..."
            )

            if cancellation is not None:
                cancellation.raise_if_cancelled()
            await self._sleep(delay)
            attempt += 1

    async def aclose(self) -> None:
        if self.wrapped is not None:
            await self.wrapped.aclose()
        await super().aclose()
