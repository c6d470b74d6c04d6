"""Pytest configuration and fixtures for backend tests.

Database Handling:
- TEST_DATABASE_URL is used when set (e.g. a PostgreSQL asyncpg URL)
- Otherwise each test gets a fresh in-memory SQLite database (aiosqlite)
"""

import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Set test environment variables before importing app modules
os.environ["JWT_SECRET_KEY"] = "test-secret-key-" + "0" * 32
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SMTP_HOST", "")

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

# Test credentials
TEST_ADMIN_EMAIL = "admin@example.com"
TEST_ADMIN_PASSWORD = "admin123"
TEST_USER_EMAIL = "user@example.com"
TEST_USER_PASSWORD = "password123"


def _create_test_engine():
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so the in-memory database outlives each session
        return create_async_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)


# --- Login Rate Limiter Reset Fixture ---


def _reset_login_rate_limiter_state():
    """Clear failed-login bookkeeping kept at module level in the auth router."""
    from storefront.api.auth import _login_attempts

    _login_attempts.clear()


@pytest.fixture(autouse=True)
def reset_login_rate_limiter():
    """Reset the login rate limiter before and after each test."""
    _reset_login_rate_limiter_state()
    yield
    _reset_login_rate_limiter_state()


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a database engine with all tables for one test."""
    from storefront.core.database import Base
    from storefront.models import RevokedToken, User  # noqa: F401

    engine = _create_test_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""
    from storefront.core.database import get_db
    from storefront.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# --- Test Factories ---


@pytest.fixture
def user_factory(db_session):
    """Factory for creating test users."""
    from storefront.models.user import User
    from storefront.services.auth import hash_password

    async def _create_user(
        email: str = TEST_USER_EMAIL,
        password: str = TEST_USER_PASSWORD,
        name: str = "Test User",
        is_admin: bool = False,
        **kwargs: Any,
    ) -> User:
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            is_admin=is_admin,
            **kwargs,
        )
        db_session.add(user)
        await db_session.flush()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest_asyncio.fixture
async def admin_user(user_factory):
    """Create a test administrator."""
    return await user_factory(
        email=TEST_ADMIN_EMAIL,
        password=TEST_ADMIN_PASSWORD,
        name="Admin",
        is_admin=True,
    )


@pytest_asyncio.fixture
async def regular_user(user_factory):
    """Create a test customer."""
    return await user_factory()


@pytest_asyncio.fixture
async def auth_tokens(admin_user) -> dict[str, str]:
    """Issue a token pair for the test administrator."""
    from storefront.services.tokens import get_token_issuer

    pair = get_token_issuer().issue_pair(admin_user)
    return {
        "access_token": pair.access_token,
        "refresh_token": pair.refresh_token,
    }


@pytest_asyncio.fixture
async def admin_headers(auth_tokens) -> dict[str, str]:
    """Headers with JWT token for authenticated requests."""
    return {"Authorization": f"Bearer {auth_tokens['access_token']}"}


# --- Pytest Hooks for Auto-Marking ---


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their fixtures and location.

    - Tests using db_session, db_engine, or async_client are marked as 'integration'
    - Everything else is marked as 'unit'
    - Tests can override with explicit markers
    """
    integration_fixtures = {"db_session", "db_engine", "async_client"}

    for item in items:
        if any(mark.name in ("unit", "integration") for mark in item.iter_markers()):
            continue

        if hasattr(item, "fixturenames") and integration_fixtures & set(item.fixturenames):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
