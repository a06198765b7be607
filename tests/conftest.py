from __future__ import annotations

from collections.abc import Iterator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from helpdesk.core.config import Settings
from helpdesk.main import create_app
from helpdesk.security.access import AuthContext, Role
from helpdesk.seed import seed_demo_data
from helpdesk.tickets.repository import InMemoryStore
from helpdesk.tickets.service import TicketService

# Seeded ids: admin=1, agent=2, sarah=3, john=4, emily=5, robert=6.
# Seeded tickets: 1 sarah/in_progress, 2 john/open/high, 3 emily/resolved, 4 robert/open/low.
DEMO_PASSWORDS = {
    "admin": "admin123",
    "agent": "agent123",
    "sarah": "customer123",
    "john": "customer123",
    "emily": "customer123",
    "robert": "customer123",
}


@pytest_asyncio.fixture
async def store() -> InMemoryStore:
    store = InMemoryStore()
    await seed_demo_data(store)
    return store


@pytest.fixture
def service(store: InMemoryStore) -> TicketService:
    return TicketService(store)


@pytest.fixture
def admin_ctx() -> AuthContext:
    return AuthContext(user_id=1, role=Role.ADMIN)


@pytest.fixture
def agent_ctx() -> AuthContext:
    return AuthContext(user_id=2, role=Role.AGENT)


@pytest.fixture
def sarah_ctx() -> AuthContext:
    return AuthContext(user_id=3, role=Role.CUSTOMER)


@pytest.fixture
def john_ctx() -> AuthContext:
    return AuthContext(user_id=4, role=Role.CUSTOMER)


@pytest.fixture
def settings() -> Settings:
    return Settings(storage_backend="memory", seed_demo_data=True, session_secret="test-secret")


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client: TestClient):
    def _login(username: str) -> dict:
        response = client.post(
            "/api/auth/login",
            json={"username": username, "password": DEMO_PASSWORDS[username]},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _login
