from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Fault categories surfaced to the host, one diagnostic each"""

    AUTH_CONFIG = "auth_config"
    AUTH_REFRESH = "auth_refresh"
    AUTH = "auth"
    INPUT_VALIDATION = "input_validation"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    CLIENT = "client"
    SERVER = "server"
    NETWORK = "network"
    DECODE = "decode"
    PAGINATION_OVERFLOW = "pagination_overflow"
    CANCELLED = "cancelled"


class DataSourceError(Exception):
    """Base exception for every failure of the read pipeline"""

    category: ErrorCategory = ErrorCategory.CLIENT

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[bytes] = None,
        details: Optional[dict] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        self.details = details or {}
        super().__init__(self.message)


class AuthConfigError(DataSourceError):
    """Raised when the configuration selects no credential variant, or more than one"""

    category = ErrorCategory.AUTH_CONFIG


class AuthRefreshError(DataSourceError):
    """Raised when the OAuth identity endpoint refuses or garbles a token request"""

    category = ErrorCategory.AUTH_REFRESH


class AuthError(DataSourceError):
    """Raised on 401/403 once no refresh is possible"""

    category = ErrorCategory.AUTH


class InputValidationError(DataSourceError):
    """Raised when bound inputs are missing, empty or rejected by a validator"""

    category = ErrorCategory.INPUT_VALIDATION


class NotFoundError(DataSourceError):
    """Raised on 404; the descriptor decides whether it is fatal"""

    category = ErrorCategory.NOT_FOUND


class TransientError(DataSourceError):
    """Raised when a retryable status is still returned after the last attempt"""

    category = ErrorCategory.TRANSIENT


class ClientError(DataSourceError):
    """Raised on any other 4xx"""

    category = ErrorCategory.CLIENT


class ServerError(DataSourceError):
    """Raised on any other 5xx"""

    category = ErrorCategory.SERVER


class NetworkError(DataSourceError):
    """Raised on socket, TLS, DNS or per-request timeout failures"""

    category = ErrorCategory.NETWORK


class DecodeError(DataSourceError):
    """Raised on unparseable JSON or a schema mismatch with no safe coercion"""

    category = ErrorCategory.DECODE


class PaginationOverflowError(DataSourceError):
    """Raised when a cursor keeps producing pages past the configured cap"""

    category = ErrorCategory.PAGINATION_OVERFLOW


class ReadCancelledError(DataSourceError):
    """Raised when the host cancels a read or its deadline elapses"""

    category = ErrorCategory.CANCELLED
