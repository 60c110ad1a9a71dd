"""
HTTPClient: header injection, refresh-once on 401 and status classification.
"""

import httpx  # type: ignore
import pytest  # type: ignore

from bitbucket_provider.config.provider_config import PipelineSettings
from bitbucket_provider.exceptions import (
    AuthError,
    ClientError,
    DecodeError,
    ErrorCategory,
    NetworkError,
    NotFoundError,
    ReadCancelledError,
    ServerError,
    TransientError,
)
from bitbucket_provider.sources.client.bitbucket.bitbucket import OAuth2Credentials
from bitbucket_provider.sources.client.http.http_client import HTTPClient, error_message
from bitbucket_provider.sources.client.http.http_request import HTTPRequest
from bitbucket_provider.sources.client.http.http_response import HTTPResponse
from bitbucket_provider.sources.client.http.read_context import ReadContext
from tests.utils.bitbucket_stub import TOKEN_PATH, error_response, json_response, token_response

USER_PATH = "/2.0/user"
USER_REQUEST = HTTPRequest(url="2.0/user")


def oauth_credentials(transport, clock, token="stale", expires_in=3600.0) -> OAuth2Credentials:
    return OAuth2Credentials(
        "client-id",
        "client-secret",
        token=token,
        expires_at=clock.now + expires_in,
        clock=clock,
        transport=transport,
    )


class TestClassification:
    """Every final status maps to exactly one error category."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error_type",
        [
            (401, AuthError),
            (403, AuthError),
            (404, NotFoundError),
            (400, ClientError),
            (409, ClientError),
            (422, ClientError),
            (501, ServerError),
            (505, ServerError),
            (408, TransientError),
            (429, TransientError),
            (500, TransientError),
            (503, TransientError),
        ],
    )
    async def test_status_to_category(self, stub, make_rest_client, status, error_type):
        stub.add(USER_PATH, error_response(status, "nope"))
        client = make_rest_client()

        with pytest.raises(error_type) as exc_info:
            await client.get(USER_REQUEST)

        assert exc_info.value.status_code == status
        assert "nope" in exc_info.value.message
        await client.close()

    @pytest.mark.asyncio
    async def test_transient_error_reports_the_attempts(self, stub, make_rest_client, sleeper):
        stub.add(USER_PATH, error_response(503))
        client = make_rest_client()

        with pytest.raises(TransientError, match="after 5 attempts"):
            await client.get(USER_REQUEST)

        assert len(stub.requests) == 5
        assert len(sleeper.delays) == 4

    @pytest.mark.asyncio
    async def test_execute_returns_non_success_without_raising(self, stub, make_rest_client):
        stub.add(USER_PATH, error_response(404))
        client = make_rest_client()

        response = await client.execute(USER_REQUEST)

        assert response.is_not_found
        assert not response.is_success

    @pytest.mark.asyncio
    async def test_network_failure(self, make_rest_client):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_rest_client()
        client._transport = httpx.MockTransport(refuse)

        with pytest.raises(NetworkError) as exc_info:
            await client.get(USER_REQUEST)

        assert exc_info.value.category is ErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_request_timeout_is_a_network_failure(self, make_rest_client):
        def slow(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_rest_client()
        client._transport = httpx.MockTransport(slow)

        with pytest.raises(NetworkError, match="timed out after 30.0s"):
            await client.get(USER_REQUEST)

    @pytest.mark.asyncio
    async def test_unsendable_url_is_a_decode_error(self, stub, make_rest_client):
        client = make_rest_client()

        with pytest.raises(DecodeError, match="malformed URL"):
            await client.get(HTTPRequest(url="https://[::1/2.0/user?access_token=abc"))

        assert stub.requests == []

    @pytest.mark.asyncio
    async def test_malformed_json_is_a_decode_error(self, stub, make_rest_client):
        stub.add(USER_PATH, httpx.Response(200, content=b"{not json", headers={"Content-Type": "application/json"}))
        client = make_rest_client()

        response = await client.get(USER_REQUEST)

        with pytest.raises(DecodeError):
            response.json()


class TestHeaders:
    @pytest.mark.asyncio
    async def test_default_headers_and_authorization(self, stub, make_rest_client):
        stub.add(USER_PATH, json_response(200, {"uuid": "{u}"}))
        client = make_rest_client()

        await client.get(USER_REQUEST)

        sent = stub.requests[0]
        assert sent.headers["Authorization"] == "Bearer test-token"
        assert sent.headers["Accept"] == "application/json"
        assert sent.headers["User-Agent"] == "bitbucket-provider"
        assert str(sent.url) == "https://api.bitbucket.org/2.0/user"

    @pytest.mark.asyncio
    async def test_query_parameters_keep_their_order(self, stub, make_rest_client):
        stub.add("/2.0/repositories/w", json_response(200, {"values": []}))
        client = make_rest_client()

        await client.get(HTTPRequest(url="2.0/repositories/w", query_params={"sort": "-updated_on", "q": 'name ~ "x"'}))

        assert stub.requests[0].url.raw_path == b"/2.0/repositories/w?sort=-updated_on&q=name%20~%20%22x%22"

    @pytest.mark.asyncio
    async def test_cancelled_context_sends_nothing(self, stub, make_rest_client):
        ctx = ReadContext()
        ctx.cancellation.cancel()
        client = make_rest_client()

        with pytest.raises(ReadCancelledError):
            await client.get(USER_REQUEST, ctx)

        assert stub.requests == []


class TestRefreshOnUnauthorized:
    """A 401 triggers at most one refresh and one retry per request."""

    @pytest.mark.asyncio
    async def test_401_refreshes_and_retries_once(self, stub, transport, clock, make_rest_client):
        stub.add(TOKEN_PATH, token_response("fresh"))

        def by_token(request: httpx.Request) -> httpx.Response:
            if request.headers["Authorization"] == "Bearer fresh":
                return json_response(200, {"uuid": "{u}"})
            return error_response(401, "token expired")

        stub.add(USER_PATH, by_token)
        client = make_rest_client(oauth_credentials(transport, clock))

        response = await client.get(USER_REQUEST)

        assert response.json() == {"uuid": "{u}"}
        assert len(stub.calls(USER_PATH)) == 2
        assert len(stub.calls(TOKEN_PATH)) == 1

    @pytest.mark.asyncio
    async def test_second_401_is_an_auth_error(self, stub, transport, clock, make_rest_client):
        stub.add(TOKEN_PATH, token_response("fresh"))
        stub.add(USER_PATH, error_response(401, "revoked"))
        client = make_rest_client(oauth_credentials(transport, clock))

        with pytest.raises(AuthError):
            await client.get(USER_REQUEST)

        assert len(stub.calls(USER_PATH)) == 2
        assert len(stub.calls(TOKEN_PATH)) == 1

    @pytest.mark.asyncio
    async def test_static_credentials_never_refresh(self, stub, make_rest_client):
        stub.add(USER_PATH, error_response(401))
        client = make_rest_client()

        with pytest.raises(AuthError):
            await client.get(USER_REQUEST)

        assert len(stub.calls(USER_PATH)) == 1
        assert stub.calls(TOKEN_PATH) == []

    @pytest.mark.asyncio
    async def test_403_does_not_refresh(self, stub, transport, clock, make_rest_client):
        stub.add(USER_PATH, error_response(403, "forbidden"))
        client = make_rest_client(oauth_credentials(transport, clock))

        with pytest.raises(AuthError):
            await client.get(USER_REQUEST)

        assert stub.calls(TOKEN_PATH) == []


class TestErrorMessage:
    def test_bitbucket_error_envelope(self):
        response = HTTPResponse(error_response(404, "Repository w/r not found"))
        assert error_message(response) == "Repository w/r not found"

    def test_non_json_body(self):
        response = HTTPResponse(httpx.Response(502, content=b"<html>Bad Gateway</html>"))
        assert error_message(response) == ""

    def test_settings_attempts_drive_the_retry_budget(self):
        client = HTTPClient(None, "https://api.bitbucket.org/", settings=PipelineSettings(max_attempts=2))
        assert client.get_base_url() == "https://api.bitbucket.org"
        assert client.settings.max_attempts == 2
