# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Async SQLAlchemy engine and sessions for the gradebook database.

One pool serves the gradebook documents and the school tables (students,
classroom rosters, experience fields) read next to them. The engine is
created by ``init_database`` in the application lifespan and disposed by
``close_database``.

Example:
    await init_database(settings)
    async with get_session() as session:
        record = await session.get(GradebookRecord, gradebook_id)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from src.core.config.settings import Settings

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


class DatabaseError(Exception):
    """SQLAlchemy failure or use of the database before initialization.

    Attributes:
        message: What was being attempted.
        original_error: Underlying SQLAlchemy exception, if any.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error is None:
            return self.message
        return f"{self.message}: {self.original_error}"


async def init_database(settings: "Settings") -> None:
    """Create the engine and session factory.

    Raises:
        DatabaseError: If the engine cannot be created from the settings.
    """
    global _engine, _sessionmaker

    try:
        _engine = create_async_engine(settings.database.url, **settings.database.engine_options())
    except (SQLAlchemyError, ImportError) as e:
        raise DatabaseError("Failed to initialize database connection", e) from e

    # loaded state stays readable after commit
    _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False, autoflush=False)


async def close_database() -> None:
    """Dispose the pool. Safe to call when the database was never opened."""
    global _engine, _sessionmaker

    engine, _engine, _sessionmaker = _engine, None, None
    if engine is not None:
        await engine.dispose()


def get_engine() -> AsyncEngine:
    """Return the engine.

    Raises:
        DatabaseError: Before ``init_database``.
    """
    if _engine is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the session factory.

    Raises:
        DatabaseError: Before ``init_database``.
    """
    if _sessionmaker is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _sessionmaker


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Unit of work: commit when the block exits cleanly, roll back otherwise.

    Domain exceptions propagate unchanged; SQLAlchemy errors are wrapped in
    DatabaseError. The optimistic-lock StaleDataError is translated by the
    repository before it gets here.
    """
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError("Database operation failed", e) from e
        except BaseException:
            await session.rollback()
            raise


async def check_database_connection(timeout: float = 2.0) -> bool:
    """Run ``SELECT 1`` within ``timeout`` seconds.

    Returns:
        False when the database is not initialized, unreachable or slow.
    """
    if _engine is None:
        return False

    async def ping() -> None:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(ping(), timeout)
    except (SQLAlchemyError, OSError, asyncio.TimeoutError):
        return False
    return True
