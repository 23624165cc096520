import asyncio
import itertools
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

# Settings are read at import time, so the environment must be ready first
_TEST_DIR = Path(tempfile.mkdtemp(prefix="parsifal-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR / 'test.db'}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["AUTO_CREATE_TABLES"] = "true"
os.environ["MAIL_ENABLED"] = "false"
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["BACKEND_URL"] = "http://backend.test"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.db.session import Base, engine, init_models  # noqa: E402
from app.main import app  # noqa: E402
from app.realtime.gateway import gateway  # noqa: E402
from tests.helpers import future  # noqa: E402


async def _reset_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await init_models()


@dataclass
class ApiUser:
    id: str
    email: str
    token: str
    password: str

    @property
    def headers(self):
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def client():
    asyncio.run(_reset_database())
    gateway.registry.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    gateway.registry.clear()


@pytest.fixture
def register_user(client):
    counter = itertools.count(1)

    def _register(first_name: str = "User", email: str = None, password: str = "secret123", **extra) -> ApiUser:
        email = email or f"{first_name.lower()}{next(counter)}@example.com"
        payload = {"email": email, "password": password, "firstName": first_name, **extra}
        response = client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.text
        body = response.json()
        return ApiUser(id=body["user"]["id"], email=email, token=body["accessToken"], password=password)

    return _register


@pytest.fixture
def admin(register_user) -> ApiUser:
    return register_user("Admin", email="admin@example.com")


@pytest.fixture
def create_event(client):
    def _create(owner: ApiUser, **fields) -> dict:
        payload = {"title": "Picnic", "dateTime": future(), **fields}
        response = client.post("/api/events", json=payload, headers=owner.headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def befriend(client):
    def _befriend(first: ApiUser, second: ApiUser) -> None:
        response = client.post("/api/friends/requests", json={"receiverId": second.id}, headers=first.headers)
        assert response.status_code == 201, response.text
        response = client.post(f"/api/friends/requests/{first.id}/accept", headers=second.headers)
        assert response.status_code == 200, response.text

    return _befriend
