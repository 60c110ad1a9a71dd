"""
Global pytest configuration and fixtures for the Bitbucket provider tests.

This file contains shared fixtures that are available to all test modules
without explicit import. Every HTTP exchange goes through httpx.MockTransport
backed by BitbucketStub, so no test touches the network.
"""

import os
import sys
from pathlib import Path
from typing import Callable, Optional

import httpx  # type: ignore
import pytest  # type: ignore
from faker import Faker  # type: ignore

# Add the project root to Python path
project_root: Path = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bitbucket_provider.config.constants.service import ENV_PREFIX  # noqa: E402
from bitbucket_provider.config.provider_config import PipelineSettings  # noqa: E402
from bitbucket_provider.sources.client.bitbucket.bitbucket import (  # noqa: E402
    BearerCredentials,
    BitbucketClient,
    BitbucketRESTClient,
    Credentials,
)
from bitbucket_provider.sources.client.http.read_context import ReadContext  # noqa: E402
from bitbucket_provider.sources.external.bitbucket.bitbucket_data_source import BitbucketDataSource  # noqa: E402
from tests.utils.bitbucket_stub import BASE_URL, BitbucketStub, FakeClock, SleepRecorder  # noqa: E402

# Initialize Faker for generating test data
fake: Faker = Faker()


# ============================================================================
# Session-level fixtures
# ============================================================================


@pytest.fixture(scope="session")
def faker_instance() -> Faker:
    """
    Provide a Faker instance for generating test data.

    Returns:
        Shared Faker instance
    """
    return fake


# ============================================================================
# Function-level fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch) -> None:
    """
    Drop BITBUCKET_* variables before each test.
    This ensures credentials from the developer's shell never reach a test.
    """
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def stub() -> BitbucketStub:
    return BitbucketStub()


@pytest.fixture
def transport(stub: BitbucketStub) -> httpx.MockTransport:
    return httpx.MockTransport(stub.handler)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings()


@pytest.fixture
def read_context(settings: PipelineSettings) -> ReadContext:
    return ReadContext(settings=settings)


@pytest.fixture
def make_rest_client(transport, sleeper, settings) -> Callable[..., BitbucketRESTClient]:
    """
    Provide a factory of REST clients wired to the stub.

    Backoff waits go to the sleeper fixture instead of the event loop.

    Example:
        async def test_get(make_rest_client):
            client = make_rest_client()
            response = await client.get(HTTPRequest(url="2.0/user"))
    """

    def factory(
        credentials: Optional[Credentials] = None,
        settings_override: Optional[PipelineSettings] = None,
    ) -> BitbucketRESTClient:
        return BitbucketRESTClient(
            BASE_URL,
            credentials or BearerCredentials("test-token"),
            settings=settings_override or settings,
            transport=transport,
            sleep=sleeper,
        )

    return factory


@pytest.fixture
def make_data_source(make_rest_client) -> Callable[..., BitbucketDataSource]:
    """Provide a factory of data sources reading from the stub."""

    def factory(
        credentials: Optional[Credentials] = None,
        settings_override: Optional[PipelineSettings] = None,
    ) -> BitbucketDataSource:
        return BitbucketDataSource(BitbucketClient(make_rest_client(credentials, settings_override)))

    return factory


# ============================================================================
# Test lifecycle hooks
# ============================================================================


def pytest_collection_modifyitems(config, items):
    """
    Modify test items after collection.

    - everything under tests/unit is marked unit
    - test_scenarios.py is marked scenario
    - credential and OAuth tests are marked auth
    """
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "scenarios" in str(item.fspath):
            item.add_marker(pytest.mark.scenario)
        if "credential" in item.nodeid.lower() or "oauth" in item.nodeid.lower():
            item.add_marker(pytest.mark.auth)
