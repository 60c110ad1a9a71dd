from enum import Enum

DEFAULT_BASE_URL = "https://api.bitbucket.org/"
DEFAULT_TOKEN_URL = "https://bitbucket.org/site/oauth2/access_token"
ENV_PREFIX = "BITBUCKET_"
USER_AGENT = "bitbucket-provider"

# Names whose values never reach a log line or a diagnostic
SECRET_NAME_PATTERN = r"token|password|secret|key"


class AuthMode(str, Enum):
    """Credential variants accepted by the provider"""

    BASIC = "basic"
    BEARER = "bearer"
    OAUTH2 = "oauth2"


class CredentialKey(str, Enum):
    """Provider configuration keys that select a credential variant"""

    USERNAME = "username"
    PASSWORD = "password"
    OAUTH_TOKEN = "oauth_token"
    OAUTH_CLIENT_ID = "oauth_client_id"
    OAUTH_CLIENT_SECRET = "oauth_client_secret"


class PipelineDefaults:
    """Default limits for a single data-source read"""

    REQUEST_TIMEOUT = 30.0
    READ_TIMEOUT = 300.0
    MAX_ATTEMPTS = 5
    BASE_DELAY = 0.25
    MAX_DELAY = 8.0
    MAX_PAGES = 10_000
    TOKEN_SKEW = 10.0
    RESPONSE_PREFIX_LIMIT = 2048
