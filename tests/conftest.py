import os
import tempfile
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

_bootstrap_dir = tempfile.mkdtemp(prefix="bukkapay-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_bootstrap_dir}/bootstrap.db"
os.environ["DATABASE_URL_SYNC"] = f"sqlite:///{_bootstrap_dir}/bootstrap.db"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["ARGON2_TIME_COST"] = "1"
os.environ["ARGON2_MEMORY_COST"] = "1024"
os.environ["ARGON2_PARALLELISM"] = "1"
os.environ.pop("REDIS_URL", None)
os.environ.pop("RABBITMQ_URL", None)

from bukkapay.main import app
from bukkapay.db.db import Base, get_db
from bukkapay.models.user import User
from bukkapay.services import account_store, ledger, user_service


@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path):
    # A file database so that concurrent sessions really use separate
    # connections and contend for the same rows.
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        future=True,
        echo=False,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def async_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def async_app(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(async_app):
    transport = ASGITransport(app=async_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register(client):
    """Register and log in a user through the API."""

    async def _register(username: str, password: str = "secret123") -> dict:
        email = f"{username}@example.com"
        r = await client.post(
            "/auth/register",
            json={
                "name": username.title(),
                "email": email,
                "username": username,
                "password": password,
            },
        )
        assert r.status_code == 201, r.text
        body = r.json()

        r = await client.post("/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        tokens = r.json()

        headers = {"Authorization": f"Bearer {tokens['accessToken']}"}
        accounts = (await client.get("/accounts", headers=headers)).json()
        return {
            "user_id": body["userId"],
            "wallet_id": body["walletId"],
            "email": email,
            "password": password,
            "headers": headers,
            "refresh_token": tokens["refreshToken"],
            "account_id": accounts[0]["id"],
        }

    return _register


@pytest.fixture
def make_superuser(session_factory):
    async def _promote(user_id: str) -> None:
        async with session_factory() as db:
            await db.execute(update(User).where(User.id == user_id).values(is_superuser=True))
            await db.commit()

    return _promote


@pytest.fixture
def make_user(async_session):
    """Create a user directly, returning (user_id, default account id)."""

    async def _make(username: str):
        user = await user_service.create_user(
            async_session,
            name=username.title(),
            email=f"{username}@example.com",
            username=username,
            password="secret123",
        )
        account = await account_store.get_default_account(async_session, user.id)
        return user.id, account.id

    return _make


@pytest.fixture
def fund(async_session):
    async def _fund(user_id: str, account_id: str, amount, key: str | None = None):
        return await ledger.deposit(
            async_session,
            user_id,
            account_id,
            Decimal(str(amount)),
            key or f"fund-{account_id}-{amount}",
        )

    return _fund


@pytest.fixture
def balance_of(session_factory):
    async def _balance(account_id: str) -> Decimal:
        async with session_factory() as db:
            account = await account_store.get_account(db, account_id)
            return Decimal(str(account.balance))

    return _balance
