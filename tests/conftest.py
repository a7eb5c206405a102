"""Shared test fixtures.

Tests run against an in-memory SQLite database (aiosqlite) built from the
ORM metadata, so no Postgres or Redis is needed. Redis-dependent code
receives None and skips event publishing.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from postwars.config import get_settings
from postwars.database import get_session
from postwars.db.base import Base
from postwars.db.models import Post, Team, User
from postwars.dependencies import get_redis_dep
from postwars.gamification.achievement_service import catalog
from postwars.gamification.seed import seed_achievements

NOW = datetime(2026, 3, 10, 17, 0, 0, tzinfo=timezone.utc)  # 13:00 in New York


def _enable_sqlite_fks(dbapi_connection, _record) -> None:  # noqa: ANN001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(autouse=True)
def _fresh_catalog():
    """The achievement catalog cache is process-wide; reset it around each test."""
    catalog.invalidate()
    yield
    catalog.invalidate()


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_fks)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """Session over a database with the achievement catalog seeded."""
    await seed_achievements(db_session)
    return db_session


@pytest.fixture
def make_team(db_session: AsyncSession) -> Callable:
    async def _make(name: str = "Sales", **kwargs) -> Team:
        team = Team(name=name, **kwargs)
        db_session.add(team)
        await db_session.flush()
        return team

    return _make


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    counter = {"n": 0}

    async def _make(
        name: str | None = None,
        team: Team | None = None,
        role: str = "REGULAR",
        created_at: datetime | None = None,
        **kwargs,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            name=name or f"User {counter['n']}",
            role=role,
            team_id=team.id if team else None,
            created_at=created_at or NOW - timedelta(days=60) + timedelta(minutes=counter["n"]),
            **kwargs,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


@pytest.fixture
def make_post(db_session: AsyncSession) -> Callable:
    counter = {"n": 0}

    async def _make(
        user: User,
        created_at: datetime | None = None,
        total_score: int = 0,
        reactions: int = 0,
        comments: int = 0,
        reposts: int = 0,
        posted_at: datetime | None = None,
        url: str | None = None,
    ) -> Post:
        counter["n"] += 1
        post = Post(
            user_id=user.id,
            url=url or f"https://www.linkedin.com/posts/activity-{counter['n']}",
            reactions=reactions,
            comments=comments,
            reposts=reposts,
            total_engagement=reactions + comments + reposts,
            total_score=total_score,
            posted_at=posted_at,
            created_at=created_at or NOW,
        )
        db_session.add(post)
        await db_session.flush()
        return post

    return _make


def make_token(user_id: int, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Access token as the identity provider would issue it."""
    settings = get_settings()
    payload = {
        "sub": str(user_id),
        "aud": settings.jwt_audience,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user.id)}"}


@pytest_asyncio.fixture
async def client(session_factory, seeded_db) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app, with the test database and no Redis."""
    from postwars.main import create_app

    app = create_app()

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def _override_redis() -> AsyncGenerator[object, None]:
        yield None

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_redis_dep] = _override_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
