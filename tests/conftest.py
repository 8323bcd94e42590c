"""
Test fixtures for the Balance Tracker API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - client: Async HTTP test client (unauthenticated)
  - auth_headers / other_auth_headers: Bearer headers for two distinct users
  - authenticated_client: Test client that sends auth_headers by default
  - create_bank / create_account / create_balance: factories that go
    through the real API endpoints

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    The engine comes from app.database.build_engine, so foreign keys (and
    with them ON DELETE CASCADE / RESTRICT) are enforced exactly as in
    production.
  - We override FastAPI's get_db dependency to inject our test sessions,
    so the application code works exactly as it does in production.
  - Users are created through the real /auth/register endpoint.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base, build_engine, build_session_factory, get_db
from app.main import app


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = build_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Provide an async session bound to the test engine (service-level tests)."""
    session_factory = build_session_factory(db_engine)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    in-memory test database instead of the real one.
    """
    session_factory = build_session_factory(db_engine)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def _register(client: AsyncClient, email: str, first_name: str) -> dict:
    response = await client.post(
        "/auth/register",
        json={
            "first_name": first_name,
            "last_name": "Tester",
            "email": email,
            "password": "SecurePass123!",
        },
    )
    assert response.status_code == 201, f"Register failed: {response.text}"
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest_asyncio.fixture
async def auth_headers(client):
    """Bearer header for the primary test user."""
    return await _register(client, "testuser@example.com", "Alice")


@pytest_asyncio.fixture
async def other_auth_headers(client):
    """Bearer header for a second user, for cross-user isolation tests."""
    return await _register(client, "seconduser@example.com", "Bob")


@pytest_asyncio.fixture
async def authenticated_client(client, auth_headers):
    """Test client that sends the primary user's token on every request."""
    client.headers.update(auth_headers)
    return client


@pytest.fixture
def create_bank(client, auth_headers):
    """Factory: create a bank through POST /banks and return its JSON."""
    async def _create(name: str = "BNP Paribas", code: str | None = None) -> dict:
        response = await client.post(
            "/banks",
            json={"name": name, "code": code},
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _create


@pytest.fixture
def create_account(client, auth_headers):
    """Factory: create an account through POST /accounts and return its JSON."""
    async def _create(
        bank_id: str,
        name: str = "Main account",
        headers: dict | None = None,
        **fields,
    ) -> dict:
        response = await client.post(
            "/accounts",
            json={"name": name, "bank_id": bank_id, **fields},
            headers=headers or auth_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _create


@pytest.fixture
def create_balance(client, auth_headers):
    """Factory: record a balance through POST /balances and return its JSON."""
    async def _create(
        account_id: str,
        amount: str,
        date: str,
        headers: dict | None = None,
    ) -> dict:
        response = await client.post(
            "/balances",
            json={"account_id": account_id, "amount": amount, "date": date},
            headers=headers or auth_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _create
