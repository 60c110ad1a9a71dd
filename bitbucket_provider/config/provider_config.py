"""
Provider configuration.

Host-supplied options are loaded into pydantic models. Every option has an
environment fallback named ``BITBUCKET_<OPTION>``; an optional dotenv file is
layered underneath the process environment.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator  # type: ignore

from bitbucket_provider.config.constants.service import (
    DEFAULT_BASE_URL,
    DEFAULT_TOKEN_URL,
    ENV_PREFIX,
    CredentialKey,
    PipelineDefaults,
)

CREDENTIAL_KEYS = tuple(key.value for key in CredentialKey)


def env_key(option: str) -> str:
    """Return the environment variable name backing a provider option."""
    return f"{ENV_PREFIX}{option.upper()}"


def load_environment(
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Union[str, Path]] = None,
) -> Dict[str, str]:
    """
    Merge a dotenv file under an environment mapping.

    Args:
        env: Environment mapping (defaults to ``os.environ``)
        dotenv_path: Optional dotenv file; its values lose to ``env``

    Returns:
        A flat mapping of environment variables
    """
    merged: Dict[str, str] = {}
    if dotenv_path is not None:
        merged.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
    merged.update(os.environ if env is None else env)
    return merged


def _present(value: Any) -> bool:
    return value is not None and value != ""


class ProviderConfig(BaseModel):
    """Options recognised by the provider core."""

    username: Optional[str] = Field(default=None, description="Basic auth username")
    password: Optional[str] = Field(default=None, description="Basic auth password / app password")
    oauth_token: Optional[str] = Field(default=None, description="OAuth access token (Bearer)")
    oauth_client_id: Optional[str] = Field(default=None, description="OAuth client credentials id")
    oauth_client_secret: Optional[str] = Field(default=None, description="OAuth client credentials secret")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="REST API root")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base URL is absolute and has no trailing slash."""
        v = (v or DEFAULT_BASE_URL).strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an absolute http(s) URL, got: {v}")
        return v.rstrip("/")

    @classmethod
    def from_sources(
        cls,
        explicit: Optional[Mapping[str, Any]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> "ProviderConfig":
        """
        Build the configuration, preferring explicit options over the environment.

        When the explicit mapping sets any credential option, environment
        credentials are ignored as a whole so the two sources never mix into a
        conflicting set. ``base_url`` falls back per key.
        """
        explicit = dict(explicit or {})
        env = os.environ if env is None else env

        data: Dict[str, Any] = {}
        if any(_present(explicit.get(key)) for key in CREDENTIAL_KEYS):
            credential_source: Mapping[str, Any] = {k: explicit.get(k) for k in CREDENTIAL_KEYS}
        else:
            credential_source = {k: env.get(env_key(k)) for k in CREDENTIAL_KEYS}
        data.update({k: v for k, v in credential_source.items() if _present(v)})

        base_url = explicit.get("base_url") or env.get(env_key("base_url"))
        if base_url:
            data["base_url"] = base_url

        return cls(**data)

    def credential_keys_set(self) -> Dict[str, bool]:
        return {key: _present(getattr(self, key)) for key in CREDENTIAL_KEYS}


class PipelineSettings(BaseModel):
    """Timeouts, retry policy and safety rails of one read."""

    request_timeout: float = Field(default=PipelineDefaults.REQUEST_TIMEOUT, gt=0, description="Per-request deadline in seconds")
    read_timeout: float = Field(default=PipelineDefaults.READ_TIMEOUT, gt=0, description="Per-read deadline in seconds")
    max_attempts: int = Field(default=PipelineDefaults.MAX_ATTEMPTS, ge=1, description="Attempts per request, first one included")
    base_delay: float = Field(default=PipelineDefaults.BASE_DELAY, ge=0, description="Initial backoff delay in seconds")
    max_delay: float = Field(default=PipelineDefaults.MAX_DELAY, ge=0, description="Backoff cap in seconds")
    max_pages: int = Field(default=PipelineDefaults.MAX_PAGES, ge=1, description="Hard cap on pages per read")
    token_skew: float = Field(default=PipelineDefaults.TOKEN_SKEW, ge=0, description="Seconds before expiry a token stops being fresh")
    token_url: str = Field(default=DEFAULT_TOKEN_URL, description="OAuth identity endpoint")
    rate_limit_per_second: Optional[float] = Field(default=None, gt=0, description="Optional client-side request rate")
    response_prefix_limit: int = Field(default=PipelineDefaults.RESPONSE_PREFIX_LIMIT, ge=0, description="Bytes of a response body kept in diagnostics")

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info) -> float:
        base_delay = info.data.get("base_delay", 0)
        if v < base_delay:
            raise ValueError(f"max_delay ({v}) must be >= base_delay ({base_delay})")
        return v

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        env = os.environ if env is None else env
        data = {
            name: env[env_key(name)]
            for name in cls.model_fields
            if _present(env.get(env_key(name)))
        }
        return cls(**data)
