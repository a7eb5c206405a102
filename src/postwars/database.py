"""Async SQLAlchemy engine and session management."""

from collections.abc import AsyncGenerator, Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from postwars.exceptions import ConflictError, StoreError

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db(url: str) -> None:
    """Initialize the database engine and session factory."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = create_async_engine(
        url,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
        echo=False,
    )
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def close_db() -> None:
    """Dispose of the database engine."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory (used by workers that manage their own units of work)."""
    if _session_factory is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    async with get_session_factory()() as session:
        yield session


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Re-raise driver/ORM failures as domain errors.

    Unique-constraint violations become ConflictError; anything else coming
    from the persistence layer becomes a retryable StoreError.
    """
    try:
        yield
    except IntegrityError as exc:
        raise ConflictError(f"{operation}: conflicting row") from exc
    except SQLAlchemyError as exc:
        raise StoreError(f"{operation} failed") from exc
