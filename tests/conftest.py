"""
Shared test configuration and fixtures for pod tests.

Provides database setup, session management, seeded clients and users, and a running
application with its HTTP test client.
"""

import os
import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from social.tube.pod.app.config import (
    DatabaseSessionMakerAppKey,
    MediaStoreAppKey,
    PeerHandshakeAppKey,
    Settings,
)
from social.tube.pod.app.server import start_web_server
from social.tube.pod.library import users
from social.tube.pod.library.media import LocalMediaStore
from social.tube.pod.model.base import Base, create_database_engine
from social.tube.pod.model.users import ROLE_ADMIN
from social.tube.pod.oauth import clients
from tests.test_helpers import (
    FakeHandshake,
    ROOT_PASSWORD,
    ROOT_USERNAME,
    TEST_CLIENT_ID,
    TEST_CLIENT_SECRET,
    TEST_ITERATIONS,
)

# A server-side database may be used instead of a per-test SQLite file. It must be
# empty: tables are created before and dropped after every test.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "")


@pytest_asyncio.fixture(scope="function")
async def test_database(tmp_path):
    """Database URL for one test function."""
    if TEST_DATABASE_URL:
        yield TEST_DATABASE_URL
    else:
        yield f"sqlite+aiosqlite:///{tmp_path / 'pod.db'}"


@pytest_asyncio.fixture(scope="function")
async def engine(test_database):
    """Create async SQLAlchemy engine with all tables."""
    engine = create_database_engine(test_database, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session(engine):
    """Create async database session for testing."""
    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def session_maker(engine):
    """Session factory for tests that run operations concurrently, one session each."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def oauth_client(session):
    """Registered client allowed to use both grant types."""
    return await clients.register(
        session, TEST_CLIENT_ID, TEST_CLIENT_SECRET, name="tests"
    )


@pytest_asyncio.fixture
async def root_user(session):
    """The administrator account."""
    return await users.create(
        session, ROOT_USERNAME, ROOT_PASSWORD, role=ROLE_ADMIN, iterations=TEST_ITERATIONS
    )


@pytest.fixture
def handshake():
    return FakeHandshake(refusing={"http://refusing.example"})


@pytest.fixture
def settings(test_database, tmp_path):
    return Settings(
        debug=True,
        database_dsn=test_database,
        create_schema=True,
        metrics_backend="none",
        external_hostname="http://localhost:9000",
        password_hash_iterations=TEST_ITERATIONS,
        uploads_dir=str(tmp_path / "uploads"),
        known_pods=["http://friend.example", "http://refusing.example"],
    )


@pytest_asyncio.fixture
async def app(settings, handshake, tmp_path):
    """Application with an isolated media directory and the fake peer transport."""
    app = await start_web_server(settings)
    app[MediaStoreAppKey] = LocalMediaStore(str(tmp_path / "uploads"))
    app[PeerHandshakeAppKey] = handshake
    return app


@pytest_asyncio.fixture
async def http_client(app, test_database):
    """Running test server seeded with the test client and the root administrator."""
    client = TestClient(TestServer(app))
    await client.start_server()

    database_session_maker = app[DatabaseSessionMakerAppKey]
    async with database_session_maker() as database_session:
        await clients.register(
            database_session, TEST_CLIENT_ID, TEST_CLIENT_SECRET, name="tests"
        )
        await users.create(
            database_session,
            ROOT_USERNAME,
            ROOT_PASSWORD,
            role=ROLE_ADMIN,
            iterations=TEST_ITERATIONS,
        )

    yield client

    await client.close()

    if TEST_DATABASE_URL:
        engine = create_database_engine(test_database)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()
