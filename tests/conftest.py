"""
Shared test configuration and fixtures for Hopper tests.

Provides a controllable clock for cache expiry, fake Redis clients and mocked
aiohttp sessions.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
import fakeredis.aioredis
from aiohttp import ClientResponse, ClientSession

from tests.test_helpers import FakeClock, MockStatsdClient


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_statsd():
    return MockStatsdClient()


@pytest.fixture
def mock_session():
    """Mocked aiohttp session; configure responses through ``mock_session.response``."""
    session = AsyncMock(spec=ClientSession)
    response = AsyncMock(spec=ClientResponse)
    response.status = 200
    session.get.return_value.__aenter__.return_value = response
    session.response = response
    return session


@pytest_asyncio.fixture
async def fake_redis_client():
    """Provide fake Redis client for unit tests."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=False)
    yield client
    await client.flushall()
    await client.aclose()
