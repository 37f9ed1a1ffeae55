"""Fixtures for API tests: the app bound to the test container over ASGI."""

from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from apps.api.deps import get_container
from apps.api.main import app


@pytest_asyncio.fixture
async def client(container) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests resolve services from the test container."""
    app.dependency_overrides[get_container] = lambda: container
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
