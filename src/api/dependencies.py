# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get database sessions
- Get authenticated users
- Read the optimistic concurrency token (If-Match)
- Get service instances

Example:
    @router.get("/{gradebook_id}")
    async def get_gradebook(
        gradebook_id: UUID,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
    ):
        ...
"""

import logging
from typing import Annotated, AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.auth import CurrentUser, get_current_user
from src.core.config import Settings, get_settings
from src.domains.gradebook.repository import GradebookRepository
from src.domains.gradebook.roster import SqlExperienceFieldCatalog, SqlRosterProvider
from src.domains.gradebook.service import GradebookService
from src.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
)
from src.infrastructure.database.migrations.runner import run_migrations

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool and apply pending migrations."""
    settings = get_settings()

    await init_database(settings)

    if settings.database.auto_migrate:
        applied = await run_migrations(settings.database.url)
        if applied:
            logger.info("Applied %d migrations at startup", len(applied))


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    The session commits when the request handler returns without error.

    Yields:
        AsyncSession for the gradebook database.
    """
    async with get_session() as session:
        yield session


# =========================================================================
# Authentication Dependencies
# =========================================================================


def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user.

    Args:
        request: HTTP request.

    Returns:
        CurrentUser.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_expected_version(
    if_match: Annotated[str | None, Header(alias="If-Match")] = None,
) -> int | None:
    """Parse the If-Match header into the expected gradebook version.

    Accepts ``3``, ``"3"`` and ``W/"3"``.

    Returns:
        The expected version, or None when the header is absent.

    Raises:
        HTTPException: If the header is not a version number.
    """
    if if_match is None or if_match.strip() == "*":
        return None

    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="If-Match must carry a gradebook version number",
        )


# =========================================================================
# Service Dependencies
# =========================================================================


def get_app_settings() -> Settings:
    """Get application settings.

    Returns:
        Cached Settings instance.
    """
    return get_settings()


async def get_gradebook_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> GradebookService:
    """Get GradebookService instance.

    Args:
        db: Database session.
        settings: Application settings.

    Returns:
        GradebookService.
    """
    return GradebookService(
        repository=GradebookRepository(db),
        roster_provider=SqlRosterProvider(db),
        field_catalog=SqlExperienceFieldCatalog(db),
        settings=settings.gradebook,
    )


# =========================================================================
# Type Aliases for Cleaner Endpoint Signatures
# =========================================================================

AuthenticatedUser = Annotated[CurrentUser, Depends(require_auth)]
ExpectedVersion = Annotated[int | None, Depends(get_expected_version)]
GradebookServiceDep = Annotated[GradebookService, Depends(get_gradebook_service)]
