# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Programmatic alembic migrations for the gradebook database.

Revisions are the modules of ``migrations.versions``, applied in file-name
order. The applied revision is recorded in alembic's own ``alembic_version``
table, so the alembic CLI and this runner agree on the schema state.

The runner is awaited at startup when ``DB_AUTO_MIGRATE`` is on.

Example:
    applied = await run_migrations(settings.database.url)
"""

import importlib
import logging
import pkgutil
from types import ModuleType

from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy import Connection, inspect, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from src.infrastructure.database.migrations import versions

logger = logging.getLogger(__name__)

VERSION_TABLE = "alembic_version"


def discover_revisions() -> list[str]:
    """List revision modules of the versions package in apply order."""
    return sorted(info.name for info in pkgutil.iter_modules(versions.__path__))


REVISIONS = discover_revisions()


def load_revision(revision: str) -> ModuleType:
    """Import a revision module and check it defines upgrade.

    Raises:
        ValueError: If the module has no upgrade function.
    """
    module = importlib.import_module(f"{versions.__name__}.{revision}")
    if not callable(getattr(module, "upgrade", None)):
        raise ValueError(f"Migration {revision} has no upgrade() function")
    return module


def pending_revisions(current: str | None, target: str | None = None) -> list[str]:
    """Revisions to upgrade through, from ``current`` (exclusive) to ``target``.

    Unknown revisions yield an empty plan; nothing is applied over a schema
    this runner does not recognise.
    """
    known = REVISIONS
    if current is not None and current not in known:
        logger.warning("Database is at unknown revision %s", current)
        return []
    if target is not None and target not in known:
        logger.warning("Unknown target revision %s", target)
        return []

    start = known.index(current) + 1 if current else 0
    end = known.index(target) + 1 if target else len(known)
    return known[start:end]


async def run_migrations(db_url: str, target_revision: str | None = None) -> list[str]:
    """Upgrade the database to ``target_revision`` (latest by default).

    Each revision runs in its own transaction together with its version stamp.

    Returns:
        Applied revision ids.
    """
    engine = create_async_engine(db_url)
    applied: list[str] = []
    try:
        async with engine.begin() as conn:
            await _ensure_version_table(conn)
            current = await _current_revision(conn)
        logger.info("Gradebook schema at revision %s", current or "<empty>")

        for revision in pending_revisions(current, target_revision):
            module = load_revision(revision)
            async with engine.begin() as conn:
                await conn.run_sync(_run_operation, module.upgrade)
                await _stamp(conn, revision)
            applied.append(revision)
            logger.info("Applied migration %s", revision)
    finally:
        await engine.dispose()

    if not applied:
        logger.info("No pending migrations")
    return applied


async def _ensure_version_table(conn: AsyncConnection) -> None:
    await conn.execute(
        text(
            f"CREATE TABLE IF NOT EXISTS {VERSION_TABLE} ("
            "version_num VARCHAR(32) NOT NULL, "
            f"CONSTRAINT {VERSION_TABLE}_pkc PRIMARY KEY (version_num))"
        )
    )


async def _current_revision(conn: AsyncConnection) -> str | None:
    result = await conn.execute(text(f"SELECT version_num FROM {VERSION_TABLE}"))
    return result.scalar_one_or_none()


async def _stamp(conn: AsyncConnection, revision: str) -> None:
    await conn.execute(text(f"DELETE FROM {VERSION_TABLE}"))
    await conn.execute(
        text(f"INSERT INTO {VERSION_TABLE} (version_num) VALUES (:revision)"),
        {"revision": revision},
    )


def _run_operation(connection: Connection, operation) -> None:
    """Run an alembic ``op``-based function on a sync connection."""
    context = MigrationContext.configure(connection)
    with Operations.context(context):
        operation()


async def schema_revision(engine: AsyncEngine) -> str | None:
    """Revision recorded in the database, or None before the first migration."""
    async with engine.connect() as conn:
        table_exists = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).has_table(VERSION_TABLE)
        )
        if not table_exists:
            return None
        return await _current_revision(conn)
