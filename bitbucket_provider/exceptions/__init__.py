from bitbucket_provider.exceptions.datasource_exceptions import (
    AuthConfigError,
    AuthError,
    AuthRefreshError,
    ClientError,
    DataSourceError,
    DecodeError,
    ErrorCategory,
    InputValidationError,
    NetworkError,
    NotFoundError,
    PaginationOverflowError,
    ReadCancelledError,
    ServerError,
    TransientError,
)

__all__ = [
    "AuthConfigError",
    "AuthError",
    "AuthRefreshError",
    "ClientError",
    "DataSourceError",
    "DecodeError",
    "ErrorCategory",
    "InputValidationError",
    "NetworkError",
    "NotFoundError",
    "PaginationOverflowError",
    "ReadCancelledError",
    "ServerError",
    "TransientError",
]
