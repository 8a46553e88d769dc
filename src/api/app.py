# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI application factory for the School Gradebook API.

Run with ``uvicorn src.api.app:create_app --factory`` or ``gradebook-api``.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from src import __version__
from src.api.dependencies import close_db, init_db
from src.api.errors import register_exception_handlers
from src.api.middleware.auth import REQUEST_ID_HEADER, AuthMiddleware
from src.api.routes import health
from src.api.v1 import router as v1_router
from src.core.config import Settings, get_settings
from src.domains.gradebook.aggregation import configure_collation
from src.infrastructure.database import DatabaseError
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)

TITLE = "School Gradebook API"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database pool on startup and close it on shutdown.

    Outside production a database that cannot be opened is logged and the
    API starts anyway; ``/health/ready`` then answers 503.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info("Starting %s %s (%s)", TITLE, __version__, settings.environment)
    configure_collation(settings.gradebook.student_sort_locale)

    try:
        await init_db()
    except (DatabaseError, SQLAlchemyError, OSError) as e:
        if settings.is_production:
            raise
        logger.warning("Database unavailable at startup: %s", e)
    else:
        logger.info("Database connection initialized")

    yield

    await close_db()
    logger.info("Shutting down %s", TITLE)


def _add_middleware(app: FastAPI, settings: Settings) -> None:
    # last added runs first: CORS, then authentication
    app.add_middleware(AuthMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
        expose_headers=["ETag", REQUEST_ID_HEADER],
    )


def create_app() -> FastAPI:
    """Build the application: error handlers, middleware and routers.

    Interactive docs are only served in debug mode.
    """
    settings = get_settings()
    docs = settings.debug

    app = FastAPI(
        title=TITLE,
        description="Terms, lessons, attendance and evaluations for school gradebooks",
        version=__version__,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        openapi_url="/openapi.json" if docs else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    register_exception_handlers(app)
    _add_middleware(app, settings)

    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)
    return app
