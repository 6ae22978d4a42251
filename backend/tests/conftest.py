"""Pytest fixtures for testing."""
import os

# Settings are validated at import time by db.session, so the environment must
# be in place before any app module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("DISCORD_CLIENT_ID", "test-client-id")
os.environ.setdefault("DISCORD_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("SECURE_COOKIES", "false")

from collections.abc import AsyncGenerator, Generator  # noqa: E402
from pathlib import Path  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import respx  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import Settings, get_settings  # noqa: E402
from core.identity_provider import DiscordIdentityProvider  # noqa: E402
from models.base import Base  # noqa: E402
from models.user import User  # noqa: E402
from services.token_service import TokenIssuer  # noqa: E402
from tests.factories import DISCORD_API, FakeBlobStorage  # noqa: E402


def _use_postgres() -> bool:
    return os.environ.get("TEST_DATABASE", "sqlite").lower() == "postgres"


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str]:
    """Start a PostgreSQL container for the test session (TEST_DATABASE=postgres)."""
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16", driver="asyncpg") as postgres:
        yield postgres.get_connection_url()


@pytest.fixture
def database_url(request: pytest.FixtureRequest, tmp_path: Path) -> str:
    """
    URL of the database for one test.

    SQLite gets a fresh file per test. A file (not :memory:) is used so that
    separate sessions really are separate connections, which the concurrency
    tests rely on.
    """
    if _use_postgres():
        return request.getfixturevalue("postgres_url")
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine with a fresh schema."""
    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    if _use_postgres():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for tests that need several independent sessions."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """An async session on the test database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    """Settings from the test environment."""
    get_settings.cache_clear()
    return get_settings()


@pytest.fixture
def storage() -> FakeBlobStorage:
    """In-memory blob storage."""
    return FakeBlobStorage()


@pytest.fixture
def issuer(settings: Settings) -> TokenIssuer:
    """Token issuer using the test signing secret and the real clock."""
    return TokenIssuer(secret=settings.jwt_secret)


@pytest.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient]:
    """HTTP client for the identity provider (requests are mocked with respx)."""
    async with httpx.AsyncClient(timeout=5) as client:
        yield client


@pytest.fixture
def identity_provider(http_client: httpx.AsyncClient) -> DiscordIdentityProvider:
    """Discord provider pointed at the mocked API endpoint."""
    return DiscordIdentityProvider(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:8080/auth/callback",
        http=http_client,
        api_endpoint=DISCORD_API,
    )


@pytest.fixture
async def user(db_session: AsyncSession) -> User:
    """A committed user."""
    user = User(
        discord_id="100000000000000001",
        name="alice",
        display_name="Alice",
        avatar="a1b2c3",
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second committed user."""
    user = User(
        discord_id="100000000000000002",
        name="bob",
        display_name="Bob",
        avatar=None,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    storage: FakeBlobStorage,
    identity_provider: DiscordIdentityProvider,
    settings: Settings,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client wired to the test database, storage and provider."""
    from api.main import app
    from core.identity_provider import get_identity_provider
    from core.storage import get_blob_storage
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_blob_storage] = lambda: storage
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_settings] = lambda: settings

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def mock_discord() -> Generator[respx.MockRouter]:
    """Mock the Discord API. Routes must be registered by the test."""
    with respx.mock(base_url=DISCORD_API, assert_all_called=False) as respx_mock:
        yield respx_mock
