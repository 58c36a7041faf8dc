"""
Integration fixtures: a throwaway SQLite database and an in-process API client.

The engine is created when ``foodbridge.shared.database`` is first imported,
so the environment is set before any application module is loaded.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="foodbridge-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/foodbridge.db"
os.environ["JWT_SECRET_KEY"] = "integration-test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "testing"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from foodbridge.api.main import app  # noqa: E402
from foodbridge.api.routers.auth import hash_password  # noqa: E402
from foodbridge.shared.database import get_session_context, reset_database_for_testing  # noqa: E402
from foodbridge.shared.models import User, UserRole  # noqa: E402

from foodbridge.tests.integration.helpers import PASSWORD, Account, donation_payload, register  # noqa: E402


@pytest.fixture(autouse=True)
async def fresh_database():
    """Every test starts from an empty schema."""
    await reset_database_for_testing()
    yield


@pytest.fixture
async def client():
    # Deliver events inline so notifications exist when the response returns
    app.state.event_bus.run_in_background = False
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def donor(client):
    return await register(client, "donor", "Spice Route", organization_name="Spice Route Restaurant")


@pytest.fixture
async def receiver(client):
    return await register(client, "receiver", "Hope Shelter", lat=28.6129, lng=77.2295, address="India Gate")


@pytest.fixture
async def volunteer(client):
    return await register(client, "volunteer", "Asha")


@pytest.fixture
async def admin(client):
    # Admins cannot self-register
    async with get_session_context() as session:
        session.add(User(
            email="admin@example.com",
            password_hash=hash_password(PASSWORD),
            name="Admin",
            role=UserRole.ADMIN,
            points=0,
            is_active=True,
        ))

    response = await client.post("/api/auth/login", json={"email": "admin@example.com", "password": PASSWORD})
    assert response.status_code == 200, response.text
    body = response.json()
    return Account(body["access_token"], body["user"])


@pytest.fixture
async def pending(client, donor):
    response = await client.post("/api/donations", json=donation_payload(), headers=donor.headers)
    assert response.status_code == 201, response.text
    return response.json()
