"""
Pytest configuration and fixtures for tests.
Provides reusable test fixtures for database, users, groups and the HTTP client.
"""
import os

# Settings are read at import time; point the app at SQLite before importing it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PUSH_GATEWAY_URL", "")

import pytest
from typing import AsyncGenerator, Dict
from unittest.mock import AsyncMock, MagicMock

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from cipherpost.main import app
from cipherpost.core.database import get_db
from cipherpost.core.ids import next_id
from cipherpost.core.security import create_access_token
from cipherpost.dependencies import get_current_user, get_push_dispatcher
from cipherpost.models import Base, User


# In-memory SQLite shared by every session of a test through a single connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine) -> async_sessionmaker:
    """Session factory bound to the test engine (used by the push dispatcher)."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def _create_user(db_session: AsyncSession, first_name: str, last_name: str, index: int) -> User:
    user = User(
        id=next_id(),
        sub=f"sub-{first_name.lower()}",
        email=f"{first_name.lower()}@example.com",
        phone_number=f"+1555000{index:04d}",
        first_name=first_name,
        last_name=last_name,
        public_key=f"pk-{first_name.lower()}",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    # Detached, so a rolled-back transaction inside a test does not expire it
    db_session.expunge(user)
    return user


@pytest.fixture
async def alice(db_session: AsyncSession) -> User:
    """Create a test user."""
    return await _create_user(db_session, "Alice", "Anders", 1)


@pytest.fixture
async def bob(db_session: AsyncSession) -> User:
    """Create a second test user."""
    return await _create_user(db_session, "Bob", "Brown", 2)


@pytest.fixture
async def carol(db_session: AsyncSession) -> User:
    """Create a third test user."""
    return await _create_user(db_session, "Carol", "Chen", 3)


@pytest.fixture
async def dave(db_session: AsyncSession) -> User:
    """Create a fourth test user (never a member of anything by default)."""
    return await _create_user(db_session, "Dave", "Diaz", 4)


@pytest.fixture
async def approved_group(db_session: AsyncSession, alice: User, bob: User):
    """Group born from Alice's request to Bob, approved by Bob."""
    from cipherpost.services.message_request_service import MessageRequestService

    service = MessageRequestService(db_session)
    request = await service.create(alice, bob.id)
    _, group = await service.approve(request.id, bob)
    db_session.expunge(group)
    return group


@pytest.fixture
async def trio_group(db_session: AsyncSession, approved_group, alice: User, carol: User):
    """Approved Alice/Bob group with Carol added by Alice."""
    from cipherpost.services.group_service import GroupService

    group = await GroupService(db_session).add_member(approved_group.id, alice, carol.id)
    db_session.expunge(group)
    return group


@pytest.fixture
def auth_as():
    """Build Authorization headers for a user's identity."""
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token({"sub": user.sub})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def push_dispatcher():
    """Push dispatcher stand-in recording background dispatches."""
    dispatcher = MagicMock()
    dispatcher.dispatch = AsyncMock()
    return dispatcher


@pytest.fixture
def acting_user(alice: User) -> Dict[str, User]:
    """Mutable holder for the user the client authenticates as (Alice by default)."""
    return {"user": alice}


@pytest.fixture(scope="function")
async def client(
    db_session: AsyncSession, acting_user, push_dispatcher
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with dependency overrides."""

    async def override_get_db():
        yield db_session

    async def override_get_current_user():
        return acting_user["user"]

    # Override dependencies
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_push_dispatcher] = lambda: push_dispatcher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    # Clear overrides after test
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def unauth_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with real token authentication."""

    async def override_get_db():
        yield db_session

    # Only override database, not authentication
    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    # Clear overrides after test
    app.dependency_overrides.clear()
