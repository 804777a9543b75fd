"""Shared test fixtures.

The app lifespan (DB ping) is not run by ASGITransport, so HTTP tests work
without a database as long as get_db_session is overridden.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
