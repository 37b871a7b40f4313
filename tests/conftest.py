import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="finance-tracker-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(_db_dir, "test.db")
os.environ["SECRET_KEY"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"

import asyncio  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import delete  # noqa: E402

import database  # noqa: E402
from main import app  # noqa: E402
from models import UserModel  # noqa: E402


async def _reset_schema():
    await database.drop_tables()
    await database.create_tables()


async def _delete_user(email):
    async with database.async_session() as session:
        await session.execute(delete(UserModel).where(UserModel.email == email))
        await session.commit()


@pytest.fixture
def client():
    asyncio.run(_reset_schema())
    with TestClient(app) as c:
        yield c


def register(client, name="Alice", email="alice@example.com", password="secret123"):
    return client.post("/auth/register", json={"name": name, "email": email, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice(client):
    res = register(client)
    assert res.status_code == 201
    return bearer(res.json()["data"]["token"])


@pytest.fixture
def bob(client):
    res = register(client, name="Bob", email="bob@example.com", password="hunter22")
    assert res.status_code == 201
    return bearer(res.json()["data"]["token"])


@pytest.fixture
def remove_user():
    def _remove(email):
        asyncio.run(_delete_user(email))
    return _remove
