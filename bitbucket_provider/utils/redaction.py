"""
Masking of secrets before they reach logs or diagnostics.
"""

import logging
import re
from typing import Any, Dict, Iterable, Mapping, Tuple
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

import httpx  # type: ignore

from bitbucket_provider.config.constants.service import SECRET_NAME_PATTERN

REDACTED = "***"

_SECRET_NAME = re.compile(SECRET_NAME_PATTERN, re.IGNORECASE)
_SENSITIVE_HEADERS = {"authorization", "proxy-authorization", "cookie", "set-cookie"}


def is_secret_name(name: str) -> bool:
    """Return True when a parameter or input name looks like it carries a secret."""
    return bool(_SECRET_NAME.search(name))


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {
        key: REDACTED if key.lower() in _SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def redact_query_pairs(pairs: Iterable[Tuple[str, str]]) -> list:
    return [(name, REDACTED if is_secret_name(name) else value) for name, value in pairs]


def redact_url(url: str) -> str:
    """Mask secret-named query parameters and userinfo passwords in a URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        # unparseable, so nothing after the path is trusted
        base, has_query, _ = url.partition("?")
        return f"{base}?{REDACTED}" if has_query else base
    netloc = parts.netloc
    if "@" in netloc:
        netloc = f"{REDACTED}@{netloc.rsplit('@', 1)[1]}"
    if not parts.query:
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    pairs = redact_query_pairs(parse_qsl(parts.query, keep_blank_values=True))
    # REDACTED is kept literal so the mask stays readable in log lines
    query = "&".join(
        f"{quote(name, safe='')}={value if value == REDACTED else quote(value, safe='')}"
        for name, value in pairs
    )
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def redact_inputs(inputs: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        name: REDACTED if is_secret_name(name) and value not in (None, "") else value
        for name, value in inputs.items()
    }


class RedactingFilter(logging.Filter):
    """
    Rewrites URL arguments of a log record through redact_url.

    httpx logs every request as ``HTTP Request: GET <url> ...`` at INFO with
    the full URL, pagination cursors included.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, tuple):
            record.args = tuple(self._redact(arg) for arg in record.args)
        return True

    @staticmethod
    def _redact(arg: Any) -> Any:
        if isinstance(arg, (str, httpx.URL)):
            text = str(arg)
            if text.startswith(("http://", "https://")):
                return redact_url(text)
        return arg


def install_log_redaction(*names: str) -> None:
    """Attach a RedactingFilter to each named logger (httpx by default), once."""
    for name in names or ("httpx",):
        target = logging.getLogger(name)
        if not any(isinstance(existing, RedactingFilter) for existing in target.filters):
            target.addFilter(RedactingFilter())
