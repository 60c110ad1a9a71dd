import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union
from urllib.parse import parse_qs

import httpx  # type: ignore
from pydantic import ValidationError  # type: ignore

from bitbucket_provider.config.constants.http_status_code import HttpStatusCode
from bitbucket_provider.config.constants.service import (
    DEFAULT_BASE_URL,
    DEFAULT_TOKEN_URL,
    AuthMode,
    PipelineDefaults,
)
from bitbucket_provider.config.provider_config import PipelineSettings, ProviderConfig
from bitbucket_provider.exceptions import AuthConfigError, AuthRefreshError
from bitbucket_provider.sources.client.http.http_auth import HTTPAuth
from bitbucket_provider.sources.client.http.http_client import HTTPClient
from bitbucket_provider.sources.client.iclient import IClient
from bitbucket_provider.utils.single_flight import SingleFlight


def basic_authorization(username: str, password: str) -> str:
    """Build the value of a Basic Authorization header."""
    # Construct the auth string "username:password"
    auth_str = f"{username}:{password}"
    return f"Basic {base64.b64encode(auth_str.encode('utf-8')).decode('ascii')}"


class Credentials(HTTPAuth):
    """Base class of the credential variants; exactly one is active per provider."""

    mode: AuthMode

    def describe(self) -> str:
        return self.mode.value


class BasicCredentials(Credentials):
    """Basic Auth (username plus App Password or API Token)

    Args:
        username: The Bitbucket username (or email for API Tokens)
        password: The App Password or API Token value
    """

    mode = AuthMode.BASIC

    def __init__(self, username: str, password: str) -> None:
        self.username = username
        self._authorization = basic_authorization(username, password)

    async def authorize(self, headers: Dict[str, str]) -> Dict[str, str]:
        return {**headers, "Authorization": self._authorization}


class BearerCredentials(Credentials):
    """Static Bearer token (Workspace Access Token or a pre-issued OAuth token)

    Args:
        token: The access token
    """

    mode = AuthMode.BEARER

    def __init__(self, token: str) -> None:
        self._token = token

    async def authorize(self, headers: Dict[str, str]) -> Dict[str, str]:
        return {**headers, "Authorization": f"Bearer {self._token}"}


class OAuth2Credentials(Credentials):
    """
    OAuth2 client-credentials grant with a cached, self-refreshing token.

    The cached token and its expiry are set together or not at all. A token is
    fresh while ``clock() < expires_at - skew``. Refreshes are single-flight:
    concurrent callers that find the token stale, or that were answered 401,
    await one shared identity request.

    Args:
        client_id: OAuth consumer key
        client_secret: OAuth consumer secret
        token_url: Identity endpoint issuing access tokens
        skew: Seconds before expiry at which the token stops being fresh
        token: Optional pre-issued token (requires expires_at)
        expires_at: Expiry of the pre-issued token, in clock() seconds
        clock: Time source, seconds since the epoch
        transport: Optional httpx transport for the identity call
        timeout: Deadline of the identity call in seconds
        logger: Optional logger instance
    """

    mode = AuthMode.OAUTH2

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_url: str = DEFAULT_TOKEN_URL,
        skew: float = PipelineDefaults.TOKEN_SKEW,
        token: Optional[str] = None,
        expires_at: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = PipelineDefaults.REQUEST_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if (token is None) != (expires_at is None):
            raise AuthConfigError("an OAuth token and its expiry must be provided together")
        self.client_id = client_id
        self._client_secret = client_secret
        self.token_url = token_url
        self.skew = skew
        self.token = token
        self.expires_at = expires_at
        self._clock = clock
        self._transport = transport
        self._timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._refresh = SingleFlight()

    @property
    def can_refresh(self) -> bool:
        return True

    @property
    def refresh_count(self) -> int:
        """Number of identity requests issued so far"""
        return self._refresh.executions

    def is_fresh(self) -> bool:
        if self.token is None or self.expires_at is None:
            return False
        return self._clock() < self.expires_at - self.skew

    def _bearer(self) -> Optional[str]:
        return f"Bearer {self.token}" if self.token is not None else None

    async def authorize(self, headers: Dict[str, str]) -> Dict[str, str]:
        if not self.is_fresh():
            await self.refresh()
        return {**headers, "Authorization": f"Bearer {self.token}"}

    async def on_unauthorized(self, failed_authorization: Optional[str] = None) -> bool:
        # Someone else already replaced the rejected token
        if failed_authorization is not None and failed_authorization != self._bearer() and self.is_fresh():
            return True
        await self.refresh()
        return True

    async def refresh(self) -> None:
        """Obtain a new token, joining a refresh that is already in flight."""
        await self._refresh.do(self._fetch_token)

    def _clear(self) -> None:
        self.token = None
        self.expires_at = None

    async def _fetch_token(self) -> None:
        headers = {
            "Authorization": basic_authorization(self.client_id, self._client_secret),
            "Accept": "application/json",
        }
        self.logger.debug(f"Requesting OAuth token from {self.token_url}")
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(
                    self.token_url,
                    data={"grant_type": "client_credentials"},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            self._clear()
            raise AuthRefreshError(f"OAuth token request to {self.token_url} failed: {type(e).__name__}") from e

        if response.status_code >= HttpStatusCode.MULTIPLE_CHOICES.value or response.status_code < HttpStatusCode.OK.value:
            self._clear()
            raise AuthRefreshError(
                f"OAuth token request failed with status {response.status_code}",
                status_code=response.status_code,
                body=response.content,
            )

        try:
            access_token, expires_in = self._parse_token(response)
        except (ValueError, TypeError, KeyError) as e:
            self._clear()
            raise AuthRefreshError(
                f"OAuth token response was malformed: {e}",
                status_code=response.status_code,
                body=response.content,
            ) from e

        self.token = access_token
        self.expires_at = self._clock() + expires_in
        self.logger.info(f"OAuth token refreshed, valid for {expires_in:.0f}s")

    @staticmethod
    def _parse_token(response: httpx.Response) -> tuple:
        # Handle both JSON and form-encoded responses
        content_type = response.headers.get("Content-Type", "").lower()
        if "application/x-www-form-urlencoded" in content_type or "text/plain" in content_type:
            parsed = parse_qs(response.text, keep_blank_values=True)
            token_data: Dict[str, Any] = {key: values[0] for key, values in parsed.items() if values}
        else:
            token_data = response.json()

        if not isinstance(token_data, dict):
            raise ValueError("expected a JSON object")
        access_token = token_data["access_token"]
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("access_token is empty")
        raw_expires_in = token_data["expires_in"]
        if isinstance(raw_expires_in, bool):
            raise ValueError("expires_in is not a number")
        expires_in = float(raw_expires_in)
        if expires_in <= 0:
            raise ValueError(f"expires_in must be positive, got {raw_expires_in}")
        return access_token, expires_in


def select_credentials(
    config: ProviderConfig,
    settings: Optional[PipelineSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Callable[[], float] = time.time,
    logger: Optional[logging.Logger] = None,
) -> Credentials:
    """
    Pick the single credential variant a configuration describes.

    Raises:
        AuthConfigError: no variant, more than one variant, or a variant with
            only half of its keys set
    """
    settings = settings or PipelineSettings()
    keys = config.credential_keys_set()

    selected = []
    if keys["username"] or keys["password"]:
        selected.append(AuthMode.BASIC)
    if keys["oauth_token"]:
        selected.append(AuthMode.BEARER)
    if keys["oauth_client_id"] or keys["oauth_client_secret"]:
        selected.append(AuthMode.OAUTH2)

    if not selected:
        raise AuthConfigError(
            "no credentials configured: set username and password, oauth_token, "
            "or oauth_client_id and oauth_client_secret"
        )
    if len(selected) > 1:
        names = ", ".join(mode.value for mode in selected)
        raise AuthConfigError(f"conflicting credentials configured ({names}); exactly one variant is allowed")

    mode = selected[0]
    if mode is AuthMode.BASIC:
        if not (keys["username"] and keys["password"]):
            raise AuthConfigError("basic credentials need both username and password")
        return BasicCredentials(config.username, config.password)
    if mode is AuthMode.BEARER:
        return BearerCredentials(config.oauth_token)
    if not (keys["oauth_client_id"] and keys["oauth_client_secret"]):
        raise AuthConfigError("oauth2 credentials need both oauth_client_id and oauth_client_secret")
    return OAuth2Credentials(
        config.oauth_client_id,
        config.oauth_client_secret,
        token_url=settings.token_url,
        skew=settings.token_skew,
        clock=clock,
        transport=transport,
        timeout=settings.request_timeout,
        logger=logger,
    )


def load_credentials(
    explicit: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
    settings: Optional[PipelineSettings] = None,
    **kwargs,
) -> Credentials:
    """Build exactly one credential variant, preferring explicit options over the environment."""
    try:
        config = ProviderConfig.from_sources(explicit, env)
    except ValidationError as e:
        raise AuthConfigError(f"invalid provider configuration: {e.errors()[0]['msg']}") from e
    return select_credentials(config, settings, **kwargs)


class BitbucketRESTClient(HTTPClient):
    """Bitbucket Cloud REST client

    Wraps HTTPClient with one of the credential variants. The base URL is the
    API root (https://api.bitbucket.org); request paths carry the "2.0" prefix.

    Args:
        base_url: The base URL of the Bitbucket API
        credentials: The active credential variant
    """

    def __init__(self, base_url: str, credentials: Credentials, **kwargs) -> None:
        super().__init__(credentials, base_url, **kwargs)
        self.credentials = credentials


@dataclass
class BitbucketBasicAuthConfig:
    """Configuration for Bitbucket client via Basic Auth (App Password or API Token)

    Args:
        username: The Bitbucket username or email address
        password: The API Token or App Password
        base_url: The API root (default: https://api.bitbucket.org/)
    """
    username: str
    password: str
    base_url: str = DEFAULT_BASE_URL

    def create_credentials(self, settings: PipelineSettings, **kwargs) -> Credentials:
        return BasicCredentials(self.username, self.password)


@dataclass
class BitbucketTokenConfig:
    """Configuration for Bitbucket client via Bearer Token

    Args:
        token: The Workspace Access Token or OAuth Access Token
        base_url: The API root (default: https://api.bitbucket.org/)
    """
    token: str
    base_url: str = DEFAULT_BASE_URL

    def create_credentials(self, settings: PipelineSettings, **kwargs) -> Credentials:
        return BearerCredentials(self.token)


@dataclass
class BitbucketOAuthConfig:
    """Configuration for Bitbucket client via OAuth2 client credentials

    Args:
        client_id: OAuth consumer key
        client_secret: OAuth consumer secret
        base_url: The API root (default: https://api.bitbucket.org/)
    """
    client_id: str
    client_secret: str
    base_url: str = DEFAULT_BASE_URL

    def create_credentials(self, settings: PipelineSettings, **kwargs) -> Credentials:
        return OAuth2Credentials(
            self.client_id,
            self.client_secret,
            token_url=settings.token_url,
            skew=settings.token_skew,
            timeout=settings.request_timeout,
            **kwargs,
        )


BitbucketConfig = Union[BitbucketBasicAuthConfig, BitbucketTokenConfig, BitbucketOAuthConfig]


class BitbucketClient(IClient):
    """Builder class for Bitbucket clients"""

    def __init__(self, client: BitbucketRESTClient) -> None:
        """Initialize with a Bitbucket client object"""
        self.client = client

    def get_client(self) -> BitbucketRESTClient:
        """Return the Bitbucket client object"""
        return self.client

    def get_base_url(self) -> str:
        """Return the base URL"""
        return self.client.get_base_url()

    @classmethod
    def build_with_config(
        cls,
        config: BitbucketConfig,
        settings: Optional[PipelineSettings] = None,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "BitbucketClient":
        """Build BitbucketClient with configuration"""
        settings = settings or PipelineSettings()
        extra: Dict[str, Any] = {}
        if isinstance(config, BitbucketOAuthConfig):
            extra = {"transport": transport, "logger": logger}
        credentials = config.create_credentials(settings, **extra)
        return cls(
            BitbucketRESTClient(
                config.base_url,
                credentials,
                settings=settings,
                logger=logger,
                transport=transport,
            )
        )

    @classmethod
    def build_from_provider_config(
        cls,
        config: ProviderConfig,
        settings: Optional[PipelineSettings] = None,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> "BitbucketClient":
        """Build BitbucketClient from host-supplied provider options

        Supports three authentication strategies:
        1. BASIC: username + password (App Password or API Token)
        2. BEARER: oauth_token
        3. OAUTH2: oauth_client_id + oauth_client_secret (client credentials grant)

        Raises:
            AuthConfigError: when the options do not select exactly one variant
        """
        settings = settings or PipelineSettings()
        credentials = select_credentials(config, settings, transport=transport, clock=clock, logger=logger)
        if logger:
            logger.debug(f"Bitbucket client configured with {credentials.describe()} credentials for {config.base_url}")
        return cls(
            BitbucketRESTClient(
                config.base_url,
                credentials,
                settings=settings,
                logger=logger,
                transport=transport,
            )
        )
