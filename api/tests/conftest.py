"""Shared pytest fixtures.

Tests run against an in-memory SQLite database (aiosqlite). StaticPool keeps
a single connection alive so every session in a test sees the same data.
Redis is a mock: the HTTP throttle's Lua call always reports the first hit.
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from trustflow.database import get_db
from trustflow.dependencies import get_redis, get_session_factory, hash_token
from trustflow.models import Base, PushKind, TrustPush, User, UserTrustFlow
from trustflow.services.bands import color_band_for
from trustflow.timeutils import utcnow

REASON = (
    "Gave a careful, well-sourced answer to my question about connection pooling "
    "and followed up the next day to check it worked."
)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Sessions on a file-backed SQLite database, one connection each.

    Unlike the shared in-memory connection, concurrent sessions here contend
    for the database write lock the way separate workers would.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'trustflow.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


async def create_users(session_factory, count: int) -> list[User]:
    users = [
        User(
            email=f"{uuid.uuid4().hex[:12]}@example.test",
            api_key_hash=hash_token(f"tok-{uuid.uuid4().hex}"),
            display_name="tester",
        )
        for _ in range(count)
    ]
    async with session_factory() as session:
        session.add_all(users)
        await session.commit()
    return users


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """Factory: create a committed user. Returns (user, auth headers)."""

    async def _make(is_admin: bool = False, cached_value: float | None = None):
        token = f"tok-{uuid.uuid4().hex}"
        user = User(
            email=f"{uuid.uuid4().hex[:12]}@example.test",
            api_key_hash=hash_token(token),
            display_name="tester",
            is_admin=is_admin,
        )
        async with session_factory() as session:
            session.add(user)
            await session.flush()
            if cached_value is not None:
                session.add(
                    UserTrustFlow(
                        user_id=user.id,
                        value=cached_value,
                        color_band=color_band_for(cached_value),
                        computed_at=utcnow() - timedelta(days=1),
                    )
                )
            await session.commit()
        return user, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def add_push(session_factory):
    """Factory: write a push straight to the ledger, skipping admission."""

    async def _add(
        from_user_id: uuid.UUID,
        to_user_id: uuid.UUID,
        kind: PushKind = PushKind.positive,
        created_at: datetime | None = None,
    ) -> TrustPush:
        push = TrustPush(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            kind=kind,
            reason=REASON,
            created_at=created_at or utcnow(),
        )
        async with session_factory() as session:
            session.add(push)
            await session.commit()
        return push

    return _add


@pytest.fixture
def mock_redis_client() -> MagicMock:
    redis = MagicMock()
    redis.eval = AsyncMock(return_value=[1, 60])
    redis.aclose = AsyncMock()
    return redis


@pytest_asyncio.fixture
async def client(session_factory, mock_redis_client) -> AsyncGenerator[AsyncClient, None]:
    from trustflow.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_redis] = lambda: mock_redis_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
