"""Shared fixtures: in-memory backends wired into the app."""
import pytest
from httpx import ASGITransport, AsyncClient

from glowup.auth_service import InMemoryAuthProvider
from glowup.dependencies import get_auth_provider, get_kv_store
from glowup.kv_store import InMemoryKVStore
from glowup.main import app


@pytest.fixture
def kv_store():
    """Create empty in-memory store."""
    return InMemoryKVStore()


@pytest.fixture
def auth_provider():
    """Create in-memory auth provider."""
    return InMemoryAuthProvider()


@pytest.fixture
async def client(kv_store, auth_provider):
    """Create test client backed by the in-memory store and auth provider."""
    app.dependency_overrides[get_kv_store] = lambda: kv_store
    app.dependency_overrides[get_auth_provider] = lambda: auth_provider

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
