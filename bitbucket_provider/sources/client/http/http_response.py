import json
from typing import Any

import httpx  # type: ignore

from bitbucket_provider.config.constants.http_status_code import (
    RETRYABLE_STATUS_CODES,
    HttpStatusCode,
)
from bitbucket_provider.exceptions import DecodeError


class HTTPResponse:
    """
    HTTP response with the body fully read into memory.

    Args:
        response: The httpx response object
    """
    def __init__(self, response: httpx.Response) -> None:
        self.response = response

    @property
    def status(self) -> int:
        return self.response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    @property
    def url(self) -> str:
        try:
            return str(self.response.request.url)
        except RuntimeError:
            # response built without a request (tests, replays)
            return ""

    @property
    def is_success(self) -> bool:
        return HttpStatusCode.OK.value <= self.status < HttpStatusCode.MULTIPLE_CHOICES.value

    @property
    def is_not_found(self) -> bool:
        return self.status == HttpStatusCode.NOT_FOUND.value

    @property
    def is_auth_expired(self) -> bool:
        return self.status == HttpStatusCode.UNAUTHORIZED.value

    @property
    def is_retryable(self) -> bool:
        return self.status in RETRYABLE_STATUS_CODES

    def bytes(self) -> bytes:
        return self.response.content

    def text(self) -> str:
        return self.response.text

    def json(self) -> Any:
        """Decode the body as JSON, raising DecodeError on malformed payloads."""
        try:
            return json.loads(self.response.content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(
                f"unable to decode JSON response from {self.url}: {e}",
                status_code=self.status,
                body=self.response.content,
            ) from e
