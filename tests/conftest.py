import asyncio

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from database import get_db
from main import app
from seed import seed_admin

ADMIN_EMAIL = "admin@store.com"
ADMIN_PASSWORD = "correct-horse"


@pytest.fixture
def db():
    return AsyncMongoMockClient()["clothing_store_test"]


@pytest.fixture
def client(db):
    async def _get_db():
        return db

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    asyncio.run(seed_admin(db, ADMIN_EMAIL, ADMIN_PASSWORD))
    return {"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}


@pytest.fixture
def admin_client(client, admin):
    resp = client.post("/auth/login", json=admin)
    assert resp.status_code == 200
    return client
