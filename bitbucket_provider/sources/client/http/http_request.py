import json
from typing import Dict
from urllib.parse import quote

from pydantic import BaseModel, Field, field_validator  # type: ignore

from bitbucket_provider.utils.redaction import redact_headers, redact_url


def encode_query(query_params: Dict[str, str]) -> str:
    """Percent-encode query components, keeping the mapping's insertion order."""
    return "&".join(
        f"{quote(name, safe='')}={quote(value, safe='')}"
        for name, value in query_params.items()
    )


def is_absolute(url: str) -> bool:
    return url.startswith(("http://", "https://"))


class HTTPRequest(BaseModel):
    """HTTP request
    Args:
        url: Path relative to the API root (segments already percent-encoded),
            or an absolute URL for pagination continuations and hosts outside the API
        method: The HTTP method to use
        headers: The headers to send with the request
        query_params: Ordered query parameters, values not yet encoded
        authenticated: Whether the provider credentials are attached
    """
    url: str = Field(alias="uri")
    method: str = Field(default="GET")
    headers: Dict[str, str] = Field(default_factory=dict)
    query_params: Dict[str, str] = Field(default_factory=dict, alias="query")
    authenticated: bool = Field(default=True)

    model_config = {"populate_by_name": True}

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        v = v.upper()
        if v != "GET":
            raise ValueError(f"Method {v} is not allowed. Only GET is issued by data sources.")
        return v

    def resolve(self, base_url: str) -> str:
        """Absolute URL: base_url / path ? query."""
        if is_absolute(self.url):
            url = self.url
        else:
            url = f"{base_url.rstrip('/')}/{self.url.lstrip('/')}"
        if self.query_params:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{encode_query(self.query_params)}"
        return url

    def to_json(self, base_url: str = "") -> str:
        """Convert request to a JSON string with secrets masked."""
        return json.dumps(
            {
                "method": self.method,
                "url": redact_url(self.resolve(base_url)) if base_url else redact_url(self.url),
                "headers": redact_headers(self.headers),
            },
            indent=2,
        )
