import os
import tempfile
import uuid

# Point the app at a throwaway sqlite file before anything imports luna
_DB_PATH = os.path.join(tempfile.gettempdir(), f"luna_test_{uuid.uuid4().hex}.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["TRACING_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"

import httpx
import pytest
import pytest_asyncio

from luna.clients.email_client import get_email_client
from luna.database import Base, engine
from luna.main import app


class FakeMailer:
    """Captures OTP mail instead of talking to SMTP."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    async def send_otp(self, to_addr: str, otp: str, name: str) -> None:
        self.sent.append((to_addr, otp, name))

    def last_otp(self, email: str) -> str:
        for to_addr, otp, _ in reversed(self.sent):
            if to_addr == email:
                return otp
        raise AssertionError(f"no OTP mailed to {email}")


@pytest_asyncio.fixture()
async def db_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def mailer():
    fake = FakeMailer()
    app.dependency_overrides[get_email_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_email_client, None)


@pytest_asyncio.fixture()
async def client(db_schema, mailer):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def make_user(client, mailer):
    """Register + verify a user, returning its id, token and auth headers."""

    async def _make(name: str = "Alice", password: str = "secret123") -> dict:
        email = f"{name.lower()}@lunamail.com"
        r = await client.post(
            "/auth/register", json={"name": name, "email": email, "password": password}
        )
        assert r.status_code == 200, r.text
        r = await client.post(
            "/auth/verify-otp", json={"email": email, "otp": mailer.last_otp(email)}
        )
        assert r.status_code == 200, r.text
        data = r.json()
        return {
            "id": data["user"]["user_id"],
            "email": email,
            "token": data["token"],
            "headers": {"Authorization": f"Bearer {data['token']}"},
        }

    return _make


@pytest_asyncio.fixture()
async def make_post(client):
    async def _make(user: dict, caption: str = "", **extra) -> dict:
        r = await client.post(
            "/posts/", json={"caption": caption, **extra}, headers=user["headers"]
        )
        assert r.status_code == 201, r.text
        return r.json()

    return _make


@pytest_asyncio.fixture()
async def follow(client):
    async def _follow(follower: dict, followee: dict) -> None:
        r = await client.post(f"/users/{followee['id']}/follow", headers=follower["headers"])
        assert r.status_code == 204, r.text

    return _follow


@pytest_asyncio.fixture()
async def lenient_client(client):
    """Like `client`, but unhandled server errors come back as 500 responses."""
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
