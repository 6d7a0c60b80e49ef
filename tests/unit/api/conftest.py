"""Fixtures for API unit tests: the app wired to the in-memory container, AsyncClient."""

import pytest
from httpx import ASGITransport, AsyncClient

from filplus.api import dependencies
from filplus.main import app


@pytest.fixture
def app_with_overrides(container):
    """App whose container uses in-memory stores and fake collaborators."""
    app.dependency_overrides[dependencies.get_container] = lambda: container
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app_with_overrides):
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def create_body():
    return {
        "application_id": "app-1",
        "application_number": 42,
        "applicant_name": "Alice",
        "applicant_org_name": "Acme Storage",
        "applicant_github_handle": "alice",
        "other_github_handles": "@bob, carol",
        "on_chain_address_for_datacap_allocation": "f2msig",
    }
