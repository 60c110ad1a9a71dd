import asyncio
import json
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx  # type: ignore
from aiolimiter import AsyncLimiter

from bitbucket_provider.config.constants.http_status_code import (
    RETRYABLE_STATUS_CODES,
    HttpStatusCode,
)
from bitbucket_provider.config.constants.service import USER_AGENT
from bitbucket_provider.config.provider_config import PipelineSettings
from bitbucket_provider.exceptions import (
    AuthError,
    ClientError,
    DataSourceError,
    DecodeError,
    NetworkError,
    NotFoundError,
    ServerError,
    TransientError,
)
from bitbucket_provider.sources.client.http.http_auth import HTTPAuth
from bitbucket_provider.sources.client.http.http_request import HTTPRequest
from bitbucket_provider.sources.client.http.http_response import HTTPResponse
from bitbucket_provider.sources.client.http.read_context import ReadContext
from bitbucket_provider.sources.client.http.resilient_transport import ResilientHTTPTransport
from bitbucket_provider.sources.client.iclient import IClient
from bitbucket_provider.utils.redaction import install_log_redaction, redact_url


class RequestState(str, Enum):
    """Lifecycle of a single GET"""

    NEW = "new"
    AUTHORIZING = "authorizing"
    IN_FLIGHT = "in_flight"
    RETRY_WAIT = "retry_wait"
    REFRESHING = "refreshing"
    DECODED = "decoded"
    FAILED = "failed"


def error_message(response: HTTPResponse) -> str:
    """Pull the human message out of a Bitbucket error envelope, if there is one."""
    try:
        data = json.loads(response.bytes())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return ""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(data.get("message"), str):
            return data["message"]
    return ""


def raise_for_status(response: HTTPResponse, attempts: int = 1) -> None:
    """
    Map a final response onto the error taxonomy.

    Raises:
        AuthError: 401 / 403
        NotFoundError: 404
        TransientError: retryable status that survived every attempt
        ClientError: any other 4xx (and unexpected non-2xx statuses)
        ServerError: any other 5xx
    """
    if response.is_success:
        return

    status = response.status
    detail = error_message(response)
    suffix = f": {detail}" if detail else ""
    body = response.bytes()

    if status in (HttpStatusCode.UNAUTHORIZED.value, HttpStatusCode.FORBIDDEN.value):
        raise AuthError(f"authorization failed with HTTP {status}{suffix}", status_code=status, body=body)
    if status == HttpStatusCode.NOT_FOUND.value:
        raise NotFoundError(f"resource not found (HTTP {status}){suffix}", status_code=status, body=body)
    if status in RETRYABLE_STATUS_CODES:
        raise TransientError(
            f"HTTP {status} persisted after {attempts} attempts{suffix}", status_code=status, body=body
        )
    if HttpStatusCode.INTERNAL_SERVER_ERROR.value <= status:
        raise ServerError(f"server error HTTP {status}{suffix}", status_code=status, body=body)
    raise ClientError(f"request rejected with HTTP {status}{suffix}", status_code=status, body=body)


class HTTPClient(IClient):
    """
    HTTP client with authentication and resilience features.

    Features:
    - Authorization header injection from an HTTPAuth source
    - One silent credential refresh and retry on 401 when the source supports it
    - Retry logic with exponential backoff and full jitter (ResilientHTTPTransport)
    - Optional client-side rate limiting

    Args:
        auth: Source of the Authorization header
        base_url: API root every relative request path is joined to
        settings: Timeouts and retry policy
        logger: Optional logger instance
        transport: Optional transport to send through (httpx.MockTransport in tests)
        sleep: Coroutine used for backoff waits
    """
    def __init__(
        self,
        auth: HTTPAuth,
        base_url: str,
        settings: Optional[PipelineSettings] = None,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.auth = auth
        self.base_url = base_url.rstrip("/")
        self.settings = settings or PipelineSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        self.rate_limiter = (
            AsyncLimiter(self.settings.rate_limit_per_second, 1)
            if self.settings.rate_limit_per_second
            else None
        )
        self._transport = transport
        self._sleep = sleep
        self.client: Optional[httpx.AsyncClient] = None

    def get_client(self) -> "HTTPClient":
        """Get the client"""
        return self

    def get_base_url(self) -> str:
        return self.base_url

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure client is created and available."""
        if self.client is None:
            install_log_redaction("httpx")
            transport = ResilientHTTPTransport(
                rate_limiter=self.rate_limiter,
                max_retries=self.settings.max_attempts - 1,
                base_delay=self.settings.base_delay,
                max_delay=self.settings.max_delay,
                logger=self.logger,
                wrapped=self._transport,
                sleep=self._sleep,
            )
            self.client = httpx.AsyncClient(
                transport=transport,
                timeout=httpx.Timeout(self.settings.request_timeout),
                follow_redirects=True,
            )
        return self.client

    def _transition(self, ctx: ReadContext, url: str, old: RequestState, new: RequestState) -> RequestState:
        ctx.logger.debug(f"GET {url} state {old.value} -> {new.value}")
        return new

    async def _send(self, client: httpx.AsyncClient, url: str, headers: dict, ctx: ReadContext) -> httpx.Response:
        try:
            return await client.request("GET", url, headers=headers, extensions=ctx.extensions())
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"request to {redact_url(url)} timed out after {self.settings.request_timeout}s"
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(f"request to {redact_url(url)} failed: {type(e).__name__}: {e}") from e
        except httpx.InvalidURL as e:
            raise DecodeError(f"cannot request malformed URL {redact_url(url)}: {e}") from e

    async def execute(self, request: HTTPRequest, ctx: Optional[ReadContext] = None) -> HTTPResponse:
        """Execute a GET request
        Args:
            request: The HTTP request to execute
            ctx: Read context (settings, logger, cancellation)
        Returns:
            A HTTPResponse with the full body read, whatever its status
        """
        ctx = ctx or ReadContext(settings=self.settings, logger=self.logger)
        client = await self._ensure_client()
        url = request.resolve(self.base_url)
        safe_url = redact_url(url)
        state = RequestState.NEW
        refreshed = False

        try:
            while True:
                ctx.raise_if_cancelled()
                state = self._transition(ctx, safe_url, state, RequestState.AUTHORIZING)
                # Merge client headers with request headers (request headers take precedence)
                headers = {**self.headers, **request.headers}
                if request.authenticated:
                    headers = await self.auth.authorize(headers)

                state = self._transition(ctx, safe_url, state, RequestState.IN_FLIGHT)
                response = HTTPResponse(await self._send(client, url, headers, ctx))

                if response.is_auth_expired and request.authenticated and self.auth.can_refresh and not refreshed:
                    state = self._transition(ctx, safe_url, state, RequestState.REFRESHING)
                    refreshed = True
                    if await self.auth.on_unauthorized(headers.get("Authorization")):
                        ctx.logger.info(f"Credentials refreshed after HTTP 401, retrying {safe_url}")
                        continue
                return response
        except (DataSourceError, asyncio.CancelledError):
            self._transition(ctx, safe_url, state, RequestState.FAILED)
            raise

    async def get(self, request: HTTPRequest, ctx: Optional[ReadContext] = None) -> HTTPResponse:
        """
        Execute a GET and classify the outcome.

        Returns:
            The successful response

        Raises:
            DataSourceError subclass for every non-2xx outcome
        """
        ctx = ctx or ReadContext(settings=self.settings, logger=self.logger)
        response = await self.execute(request, ctx)
        try:
            raise_for_status(response, attempts=self.settings.max_attempts)
        except DataSourceError as e:
            ctx.logger.debug(f"GET {redact_url(response.url)} failed: {e.category.value}: {e.message}")
            raise
        ctx.logger.debug(f"GET {redact_url(response.url)} state in_flight -> decoded")
        return response

    async def close(self) -> None:
        """Close the client"""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def __aenter__(self) -> "HTTPClient":
        """Async context manager entry"""
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit"""
        await self.close()
