"""Shared fixtures for integration tests.

Applications are created per test from explicit settings, so tests never
depend on the process environment or on each other.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator, Sequence

import pytest
from fastapi import APIRouter
from httpx import ASGITransport, AsyncClient
from loguru import logger

from src.api.main import create_app
from src.core.config import Settings
from src.core.logging import _state

ClientFactoryType = Callable[..., Awaitable[AsyncClient]]


@pytest.fixture(autouse=True)
def silence_logging() -> Generator[None]:
    """Keep application logging out of the test output."""
    logger.remove()
    _state.configured = True
    yield
    logger.remove()
    _state.configured = False


@pytest.fixture
async def client_factory() -> AsyncGenerator[ClientFactoryType]:
    """Factory fixture for creating test clients with custom app instances.

    Usage:
        async def test_something(client_factory):
            client = await client_factory(Settings(environment="production"), [router])
    """
    clients: list[AsyncClient] = []

    async def _create_client(
        settings: Settings | None = None,
        routers: Sequence[APIRouter] = (),
        *,
        raise_app_exceptions: bool = True,
    ) -> AsyncClient:
        app = create_app(settings or Settings(), routers=routers)
        transport = ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        client = AsyncClient(transport=transport, base_url="http://test")
        clients.append(client)
        return client

    yield _create_client

    for client in clients:
        await client.aclose()
