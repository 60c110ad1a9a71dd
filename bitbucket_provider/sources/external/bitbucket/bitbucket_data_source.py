"""
Bitbucket Cloud API 2.0 DataSource
===================================

Generic read pipeline shared by every Bitbucket data source: a descriptor from
the registry drives input binding, URL assembly, the authenticated GET (with
pagination for collections) and the projection of the response into the
attribute tree handed back to the host.

API Documentation: https://developer.atlassian.com/cloud/bitbucket/rest/
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field  # type: ignore

from bitbucket_provider.exceptions import (
    DataSourceError,
    InputValidationError,
    NotFoundError,
    ReadCancelledError,
)
from bitbucket_provider.sources.client.bitbucket.bitbucket import BitbucketClient
from bitbucket_provider.sources.client.http.http_request import HTTPRequest
from bitbucket_provider.sources.client.http.read_context import ReadContext
from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor, ResponseShape
from bitbucket_provider.sources.external.bitbucket.diagnostics import Diagnostic, DiagnosticReporter
from bitbucket_provider.sources.external.bitbucket.paginator import Paginator
from bitbucket_provider.sources.external.bitbucket.projection import project_document
from bitbucket_provider.sources.external.bitbucket.registry import DescriptorRegistry, build_default_registry
from bitbucket_provider.sources.external.bitbucket.url_builder import bind_inputs, build_request
from bitbucket_provider.utils.redaction import redact_inputs


class ReadResult(BaseModel):
    """Outcome of one data source read: (id, attributes) or diagnostics"""

    name: str
    id: Optional[str] = None
    attributes: Optional[Dict[str, Any]] = None
    diagnostics: List[Diagnostic] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.attributes is not None and not self.diagnostics


class BitbucketDataSource:
    """Bitbucket Cloud read-only DataSource.

    Every logical data source (bitbucket_repository, bitbucket_branch, ...) is
    a descriptor in the registry; read() runs the same pipeline for all of them.

    Usage:
        ```python
        from bitbucket_provider.sources.client.bitbucket.bitbucket import BitbucketClient, BitbucketTokenConfig
        from bitbucket_provider.sources.external.bitbucket.bitbucket_data_source import BitbucketDataSource

        client = BitbucketClient.build_with_config(BitbucketTokenConfig(token="your_token"))
        datasource = BitbucketDataSource(client)

        result = await datasource.read(ReadContext(), "bitbucket_branch",
                                       {"workspace": "w", "repo_slug": "r", "branch_name": "main"})
        if result.success:
            print(result.id, result.attributes)
        ```
    """

    def __init__(
        self,
        bitbucket_client: BitbucketClient,
        registry: Optional[DescriptorRegistry] = None,
        reporter: Optional[DiagnosticReporter] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Initialize Bitbucket DataSource.

        Args:
            bitbucket_client: BitbucketClient instance (any credential variant)
            registry: Descriptor registry (default: every shipped data source)
            reporter: Diagnostic reporter
            logger: Optional logger instance
        """
        self.client = bitbucket_client.get_client()
        self._bitbucket_client = bitbucket_client
        self.registry = registry or build_default_registry()
        self.logger = logger or logging.getLogger(__name__)
        self.reporter = reporter or DiagnosticReporter(
            prefix_limit=self.client.settings.response_prefix_limit,
            logger=self.logger,
        )
        self.paginator = Paginator(self.client, self.logger)

    def get_client(self) -> BitbucketClient:
        """Get the underlying BitbucketClient."""
        return self._bitbucket_client

    def new_context(self) -> ReadContext:
        return ReadContext(settings=self.client.settings, logger=self.logger)

    async def read(
        self,
        ctx: Optional[ReadContext],
        name: str,
        inputs: Optional[Mapping[str, Any]] = None,
    ) -> ReadResult:
        """Read one data source.

        Args:
            ctx: Read context (settings, logger, cancellation); a fresh one when None
            name: Logical data source name
            inputs: Host-supplied arguments

        Returns:
            ReadResult with id and attributes on success, or exactly one
            diagnostic on failure
        """
        ctx = ctx or self.new_context()
        inputs = dict(inputs or {})
        descriptor = self.registry.get(name)
        if descriptor is None:
            error = InputValidationError(f"unsupported data source {name}")
            return ReadResult(name=name, diagnostics=[self.reporter.report(error, inputs=inputs, endpoint=name)])

        ctx.logger.debug(f"Reading {name} with inputs {redact_inputs(inputs)}")
        try:
            async with asyncio.timeout(ctx.settings.read_timeout):
                identity, attributes = await self._read(ctx, descriptor, inputs)
        except TimeoutError:
            error = ReadCancelledError(f"read did not complete within {ctx.settings.read_timeout}s")
            return ReadResult(name=name, diagnostics=[self.reporter.report(error, descriptor, inputs)])
        except DataSourceError as e:
            return ReadResult(name=name, diagnostics=[self.reporter.report(e, descriptor, inputs)])

        ctx.logger.info(f"Read {name} as {identity}")
        return ReadResult(name=name, id=identity, attributes=attributes)

    async def _read(
        self,
        ctx: ReadContext,
        descriptor: EndpointDescriptor,
        inputs: Mapping[str, Any],
    ) -> Tuple[str, Dict[str, Any]]:
        bound = bind_inputs(descriptor, inputs)
        request = build_request(descriptor, bound)
        shape = descriptor.shape_for(bound)
        ctx.raise_if_cancelled()

        if shape is ResponseShape.PAGED:
            values = await self._collect(ctx, descriptor, request)
            collection = descriptor.projection.fields[descriptor.collection]
            document = {collection.source or descriptor.collection: values}
            projected = project_document(descriptor.projection, document, bound)
            first = values[0] if values else None
        elif shape is ResponseShape.RAW:
            response = await self.client.get(request, ctx)
            projected = project_document(descriptor.projection, None, bound, raw=response.bytes())
            first = None
        else:
            response = await self.client.get(request, ctx)
            first = response.json()
            projected = project_document(descriptor.projection, first, bound)

        return descriptor.identity(bound, first), {**bound, **projected}

    async def _collect(self, ctx: ReadContext, descriptor: EndpointDescriptor, request: HTTPRequest) -> List[Any]:
        pages = self.paginator.open(request, ctx)
        try:
            return await pages.collect()
        except NotFoundError:
            # A missing first page is an empty collection unless the parent must exist
            if descriptor.parent_mandatory or pages.pages_fetched > 0:
                raise
            ctx.logger.debug(f"{descriptor.name} returned 404, treating as an empty collection")
            return []

    async def close(self) -> None:
        await self.client.close()
