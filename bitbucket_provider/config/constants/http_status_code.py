from enum import Enum


class HttpStatusCode(Enum):
    """Constants for HTTP status codes"""

    # 2xx Success
    OK = 200
    SUCCESS = 200  # Alias for OK
    NO_CONTENT = 204
    MULTIPLE_CHOICES = 300

    # 4xx Client Errors
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    REQUEST_TIMEOUT = 408
    TOO_MANY_REQUESTS = 429

    # 5xx Server Errors
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    NETWORK_CONNECT_TIMEOUT = 599


RETRYABLE_STATUS_CODES = frozenset({
    HttpStatusCode.REQUEST_TIMEOUT.value,
    HttpStatusCode.TOO_MANY_REQUESTS.value,
    HttpStatusCode.INTERNAL_SERVER_ERROR.value,
    HttpStatusCode.BAD_GATEWAY.value,
    HttpStatusCode.SERVICE_UNAVAILABLE.value,
    HttpStatusCode.GATEWAY_TIMEOUT.value,
})
