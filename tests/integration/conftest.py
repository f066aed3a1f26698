"""Fixtures for integration tests."""

from collections.abc import AsyncGenerator, Generator

import pytest
from aioresponses import aioresponses as aioresponses_cls
from pydantic import SecretStr

from magicpod_api_client.client import MagicPodClient
from magicpod_api_client.config import ClientConfig

URL_BASE = "http://magicpod.test"


@pytest.fixture
def aioresponses() -> Generator[aioresponses_cls, None, None]:
    """Mock every aiohttp request made during the test."""
    with aioresponses_cls() as mocked:
        yield mocked


@pytest.fixture
def config() -> ClientConfig:
    """Create test configuration."""
    return ClientConfig(
        token=SecretStr("test-token"),
        organization="test-org",
        project="test-project",
        url_base=URL_BASE,
        http_headers={"X-Test-Header": "yes"},
    )


@pytest.fixture
async def client(
    config: ClientConfig, aioresponses: aioresponses_cls
) -> AsyncGenerator[MagicPodClient, None]:
    """Create client with managed session."""
    async with MagicPodClient.from_config(config) as impl:
        yield impl
