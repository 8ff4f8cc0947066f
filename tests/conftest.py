"""Shared fixtures: a fresh fixture-backed store and app per test."""
import pytest
from fastapi.testclient import TestClient

from accounts_api.config import FIXTURES_DIR, Settings
from accounts_api.main import create_app
from accounts_api.store.memory import InMemoryAccountStore

PASSWORDS = {
    "jsmith": "password123",
    "mjohnson": "password456",
    "rbrown": "password789",
    "slee": "password000",
}


@pytest.fixture
def store():
    """In-memory store loaded from the bundled fixtures."""
    store = InMemoryAccountStore(FIXTURES_DIR)
    store.load()
    return store


@pytest.fixture
def client(store):
    """Test client for an app using the local token strategy."""
    return TestClient(create_app(Settings(auth_strategy="local"), store=store))


def _login(client: TestClient, username: str) -> str:
    response = client.post(
        "/auth/login",
        json={"username": username, "password": PASSWORDS[username]},
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]["token"]


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(client):
    """Log in as the given demo user and return Authorization headers."""
    def _headers(username: str) -> dict:
        return _bearer(_login(client, username))
    return _headers


@pytest.fixture
def manager_headers(auth_headers):
    """mjohnson: manager with every permission."""
    return auth_headers("mjohnson")


@pytest.fixture
def rep_headers(auth_headers):
    """rbrown: representative without basic_operations."""
    return auth_headers("rbrown")
