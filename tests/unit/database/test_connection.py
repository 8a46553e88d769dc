# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for database engine lifecycle."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from src.core.config import DatabaseSettings, Settings
from src.infrastructure.database import connection
from src.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    get_engine,
    get_session,
    init_database,
)


@pytest.fixture(autouse=True)
def reset_engine():
    yield
    connection._engine = None
    connection._sessionmaker = None


class TestDatabaseError:
    def test_str_includes_cause(self) -> None:
        error = DatabaseError("Database operation failed", ValueError("boom"))

        assert str(error) == "Database operation failed: boom"

    def test_str_without_cause(self) -> None:
        assert str(DatabaseError("Database not initialized")) == "Database not initialized"


class TestLifecycle:
    """Tests for init, access and close."""

    def test_engine_before_init_raises(self) -> None:
        with pytest.raises(DatabaseError, match="not initialized"):
            get_engine()

    @pytest.mark.asyncio
    async def test_check_without_engine_is_false(self) -> None:
        assert await check_database_connection() is False

    @pytest.mark.asyncio
    async def test_init_passes_pool_options(self) -> None:
        settings = Settings(database=DatabaseSettings(pool_size=3, max_overflow=4))

        with patch.object(connection, "create_async_engine") as create:
            await init_database(settings)

        kwargs = create.call_args.kwargs
        assert kwargs["pool_size"] == 3
        assert kwargs["max_overflow"] == 4
        assert get_engine() is create.return_value

    @pytest.mark.asyncio
    async def test_sqlite_url_skips_pool_options(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_URL", "sqlite+aiosqlite:///:memory:")

        with patch.object(connection, "create_async_engine") as create:
            await init_database(Settings())

        assert "pool_size" not in create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_close_disposes_engine(self) -> None:
        engine = MagicMock()
        engine.dispose = AsyncMock()
        connection._engine = engine

        await close_database()
        await close_database()

        engine.dispose.assert_awaited_once()
        with pytest.raises(DatabaseError):
            get_engine()


class TestSession:
    """Tests for the unit-of-work session."""

    @pytest.fixture
    def session(self) -> AsyncMock:
        session = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)
        connection._sessionmaker = factory
        return session

    @pytest.mark.asyncio
    async def test_commits_on_success(self, session: AsyncMock) -> None:
        async with get_session():
            pass

        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sqlalchemy_error_is_wrapped(self, session: AsyncMock) -> None:
        with pytest.raises(DatabaseError):
            async with get_session():
                raise OperationalError("SELECT 1", {}, Exception("gone"))

        session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, session: AsyncMock) -> None:
        with pytest.raises(KeyError):
            async with get_session():
                raise KeyError("term")

        session.rollback.assert_awaited_once()
