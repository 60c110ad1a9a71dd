import json
import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field  # type: ignore

from bitbucket_provider.config.constants.service import PipelineDefaults
from bitbucket_provider.exceptions import DataSourceError, ErrorCategory
from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor
from bitbucket_provider.utils.redaction import redact_inputs

# One canonical detail template per fault category
DETAIL_TEMPLATES: Dict[ErrorCategory, str] = {
    ErrorCategory.AUTH_CONFIG: "{endpoint}: provider credentials are misconfigured ({message}). Inputs: {inputs}",
    ErrorCategory.AUTH_REFRESH: "{endpoint}: OAuth token refresh failed ({message}). Inputs: {inputs}",
    ErrorCategory.AUTH: "{endpoint}: request was not authorized ({message}); check the credentials and their permissions. Inputs: {inputs}",
    ErrorCategory.INPUT_VALIDATION: "{endpoint}: invalid arguments ({message}). Inputs: {inputs}",
    ErrorCategory.NOT_FOUND: "{endpoint}: resource not found ({message}). Inputs: {inputs}",
    ErrorCategory.TRANSIENT: "{endpoint}: service kept failing after retries ({message}). Inputs: {inputs}",
    ErrorCategory.CLIENT: "{endpoint}: request rejected ({message}). Inputs: {inputs}",
    ErrorCategory.SERVER: "{endpoint}: server error ({message}). Inputs: {inputs}",
    ErrorCategory.NETWORK: "{endpoint}: network failure ({message}). Inputs: {inputs}",
    ErrorCategory.DECODE: "{endpoint}: unable to decode response ({message}). Inputs: {inputs}",
    ErrorCategory.PAGINATION_OVERFLOW: "{endpoint}: pagination aborted ({message}). Inputs: {inputs}",
    ErrorCategory.CANCELLED: "{endpoint}: read cancelled ({message}). Inputs: {inputs}",
}


class Diagnostic(BaseModel):
    """A single diagnostic record handed to the host"""

    severity: str = Field(default="error")
    category: ErrorCategory
    summary: str
    detail: str
    endpoint: str = Field(default="")
    status_code: Optional[int] = Field(default=None)

    model_config = {"use_enum_values": True}


def body_prefix(body: Optional[bytes], limit: int) -> str:
    """UTF-8 text of at most limit bytes of a response body."""
    if not body or limit <= 0:
        return ""
    prefix = body[:limit].decode("utf-8", errors="replace")
    if len(body) > limit:
        return f"{prefix}... ({len(body)} bytes total)"
    return prefix


class DiagnosticReporter:
    """
    Turns pipeline errors into host diagnostics.

    The detail of every diagnostic names the data source and the input set with
    secret-looking names masked. Response bodies are embedded only as a bounded
    prefix.

    Args:
        prefix_limit: Bytes of a response body kept in the detail
        logger: Optional logger instance
    """

    def __init__(
        self,
        prefix_limit: int = PipelineDefaults.RESPONSE_PREFIX_LIMIT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.prefix_limit = prefix_limit
        self.logger = logger or logging.getLogger(__name__)

    def summary(self, error: DataSourceError, descriptor: Optional[EndpointDescriptor], inputs: Mapping[str, Any]) -> str:
        if error.category is ErrorCategory.NOT_FOUND and descriptor is not None:
            summary = descriptor.not_found_summary(inputs)
            if summary:
                return summary
        return error.message

    def report(
        self,
        error: DataSourceError,
        descriptor: Optional[EndpointDescriptor] = None,
        inputs: Optional[Mapping[str, Any]] = None,
        endpoint: Optional[str] = None,
    ) -> Diagnostic:
        inputs = dict(inputs or {})
        name = endpoint or (descriptor.name if descriptor is not None else "provider")
        safe_inputs = json.dumps(redact_inputs(inputs), sort_keys=True, default=str)

        detail = DETAIL_TEMPLATES[error.category].format(
            endpoint=name,
            message=error.message,
            inputs=safe_inputs,
        )
        if error.status_code is not None:
            detail = f"{detail}. HTTP status: {error.status_code}"
        prefix = body_prefix(error.body, self.prefix_limit)
        if prefix:
            detail = f"{detail}. Response: {prefix}"

        diagnostic = Diagnostic(
            category=error.category,
            summary=self.summary(error, descriptor, inputs),
            detail=detail,
            endpoint=name,
            status_code=error.status_code,
        )
        self.logger.error(f"{name} failed [{error.category.value}]: {diagnostic.summary}")
        return diagnostic
