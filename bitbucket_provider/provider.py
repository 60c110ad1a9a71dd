"""
Bitbucket provider lifecycle.

The host configures the provider once at handshake, issues any number of
reads (possibly concurrently) and closes it at shutdown. Credentials, the
HTTP client and the descriptor registry are shared by every read; settings,
logger and cancellation travel with each read in its ReadContext.
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Union

import httpx  # type: ignore
from pydantic import ValidationError  # type: ignore

from bitbucket_provider.config.provider_config import (
    PipelineSettings,
    ProviderConfig,
    load_environment,
)
from bitbucket_provider.exceptions import AuthConfigError, DataSourceError, InputValidationError
from bitbucket_provider.sources.client.bitbucket.bitbucket import BitbucketClient
from bitbucket_provider.sources.client.http.read_context import ReadContext
from bitbucket_provider.sources.external.bitbucket.bitbucket_data_source import BitbucketDataSource, ReadResult
from bitbucket_provider.sources.external.bitbucket.diagnostics import Diagnostic, DiagnosticReporter
from bitbucket_provider.sources.external.bitbucket.registry import DescriptorRegistry, build_default_registry


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


class BitbucketProvider:
    """Read-only Bitbucket Cloud provider.

    Usage:
        ```python
        provider = BitbucketProvider()
        diagnostics = provider.configure({"oauth_token": "..."})
        if not diagnostics:
            result = await provider.read("bitbucket_repository", {"workspace": "w", "repo_slug": "r"})
        await provider.aclose()
        ```
    """

    def __init__(
        self,
        registry: Optional[DescriptorRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.registry = registry or build_default_registry()
        self.logger = logger or logging.getLogger(__name__)
        self.reporter = DiagnosticReporter(logger=self.logger)
        self.settings = PipelineSettings()
        self.data_source: Optional[BitbucketDataSource] = None
        self._configuration_error: Optional[DataSourceError] = None

    @property
    def configured(self) -> bool:
        return self.data_source is not None

    def data_sources(self) -> List[str]:
        """Names of every data source the provider can read."""
        return self.registry.names()

    def configure(
        self,
        explicit: Optional[Mapping[str, Any]] = None,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Union[str, Path]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> List[Diagnostic]:
        """
        Build the credential store and HTTP client from host options.

        Args:
            explicit: Options set in the host configuration
            env: Environment mapping (defaults to ``os.environ``)
            dotenv_path: Optional dotenv file layered under ``env``
            transport: Optional httpx transport (tests pass a MockTransport)
            clock: Time source for token expiry

        Returns:
            An empty list on success, otherwise a single diagnostic. Reads
            issued after a failed configure report the same fault.
        """
        environment = load_environment(env, dotenv_path)
        try:
            self.settings = PipelineSettings.from_env(environment)
        except ValidationError as e:
            return self._fail(InputValidationError(f"invalid pipeline settings: {_first_error(e)}"))
        try:
            config = ProviderConfig.from_sources(explicit, environment)
        except ValidationError as e:
            return self._fail(AuthConfigError(f"invalid provider configuration: {_first_error(e)}"))
        try:
            client = BitbucketClient.build_from_provider_config(
                config,
                settings=self.settings,
                logger=self.logger,
                transport=transport,
                clock=clock,
            )
        except AuthConfigError as e:
            return self._fail(e)

        self.reporter.prefix_limit = self.settings.response_prefix_limit
        self.data_source = BitbucketDataSource(
            client,
            registry=self.registry,
            reporter=self.reporter,
            logger=self.logger,
        )
        self._configuration_error = None
        self.logger.info(f"Bitbucket provider configured for {config.base_url} with {len(self.registry)} data sources")
        return []

    def _fail(self, error: DataSourceError) -> List[Diagnostic]:
        self.data_source = None
        self._configuration_error = error
        return [self.reporter.report(error, endpoint="provider")]

    def new_context(self) -> ReadContext:
        return ReadContext(settings=self.settings, logger=self.logger)

    async def read(
        self,
        name: str,
        inputs: Optional[Mapping[str, Any]] = None,
        ctx: Optional[ReadContext] = None,
    ) -> ReadResult:
        """Read one data source; see BitbucketDataSource.read."""
        if self.data_source is None:
            error = self._configuration_error or AuthConfigError("provider is not configured")
            return ReadResult(name=name, diagnostics=[self.reporter.report(error, inputs=inputs, endpoint=name)])
        return await self.data_source.read(ctx or self.new_context(), name, inputs)

    async def aclose(self) -> None:
        if self.data_source is not None:
            await self.data_source.close()
            self.data_source = None

    async def __aenter__(self) -> "BitbucketProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
