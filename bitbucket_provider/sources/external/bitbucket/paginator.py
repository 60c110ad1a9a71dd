import logging
from typing import Any, List, Optional
from urllib.parse import urlsplit

import httpx  # type: ignore

from bitbucket_provider.config.constants.service import PipelineDefaults
from bitbucket_provider.exceptions import DecodeError, PaginationOverflowError
from bitbucket_provider.sources.client.http.http_client import HTTPClient
from bitbucket_provider.sources.client.http.http_request import HTTPRequest, is_absolute
from bitbucket_provider.sources.client.http.http_response import HTTPResponse
from bitbucket_provider.sources.client.http.read_context import ReadContext
from bitbucket_provider.utils.redaction import redact_url


class PageIterator:
    """
    Lazy, single-pass traversal of the Bitbucket ``{values, next}`` envelope.

    Values are yielded in server order, page after page. The successor page is
    only fetched once the current page's values are exhausted. An exhausted
    iterator stays exhausted; open a new one to read again.

    Args:
        client: HTTP client used for every page
        request: Request of the first page
        ctx: Read context (cancellation is checked before every page fetch)
        max_pages: Pages after which traversal aborts with pagination_overflow
    """

    def __init__(
        self,
        client: HTTPClient,
        request: HTTPRequest,
        ctx: ReadContext,
        max_pages: int = PipelineDefaults.MAX_PAGES,
    ) -> None:
        self.client = client
        self.ctx = ctx
        self.max_pages = max_pages
        self.pages_fetched = 0
        self._next: Optional[HTTPRequest] = request
        self._buffer: List[Any] = []
        self._position = 0

    def __aiter__(self) -> "PageIterator":
        return self

    async def __anext__(self) -> Any:
        while self._position >= len(self._buffer):
            if self._next is None:
                raise StopAsyncIteration
            await self._fetch()
        value = self._buffer[self._position]
        self._position += 1
        return value

    def _successor(self, current: HTTPRequest, next_url: str) -> HTTPRequest:
        if is_absolute(next_url):
            url = next_url
        elif next_url.startswith("?"):
            # Query-only cursor: same path, new query
            url = current.url.split("?", 1)[0] + next_url
        else:
            url = next_url
        return HTTPRequest(url=url, authenticated=current.authenticated)

    def _check_cursor(self, next_url: str, response: HTTPResponse) -> None:
        try:
            urlsplit(next_url)
            httpx.URL(next_url)
        except (ValueError, httpx.InvalidURL) as e:
            raise DecodeError(
                f"page {self.pages_fetched} carried a malformed next link: {e}",
                status_code=response.status,
                body=response.bytes(),
            ) from e

    async def _fetch(self) -> None:
        request = self._next
        self.ctx.raise_if_cancelled()
        if self.pages_fetched >= self.max_pages:
            raise PaginationOverflowError(
                f"pagination did not terminate after {self.max_pages} pages",
                details={"max_pages": self.max_pages},
            )

        response = await self.client.get(request, self.ctx)
        self.pages_fetched += 1
        page = response.json()
        if not isinstance(page, dict) or not isinstance(page.get("values"), list):
            raise DecodeError(
                "expected a paginated envelope with a values array",
                status_code=response.status,
                body=response.bytes(),
            )

        next_url = page.get("next")
        if not isinstance(next_url, str) or not next_url:
            next_url = None
        else:
            self._check_cursor(next_url, response)

        self._buffer = page["values"]
        self._position = 0
        if next_url:
            self._next = self._successor(request, next_url)
            self.ctx.logger.debug(
                f"Page {self.pages_fetched} returned {len(self._buffer)} values, next {redact_url(next_url)}"
            )
        else:
            self._next = None
            self.ctx.logger.debug(f"Page {self.pages_fetched} returned {len(self._buffer)} values, last page")

    async def collect(self) -> List[Any]:
        """Drain the iterator into a list."""
        return [value async for value in self]


class Paginator:
    """Opens page iterators over one HTTP client."""

    def __init__(self, client: HTTPClient, logger: Optional[logging.Logger] = None) -> None:
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def open(self, request: HTTPRequest, ctx: Optional[ReadContext] = None) -> PageIterator:
        ctx = ctx or ReadContext(settings=self.client.settings, logger=self.logger)
        return PageIterator(self.client, request, ctx, max_pages=ctx.settings.max_pages)
