# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health probes.

- ``/health/live``: the process answers.
- ``/health/ready``: the database answers; 503 otherwise.
- ``/health``: version, uptime and per-component detail, including whether
  the gradebook schema is at the latest migration.
"""

import logging
import time
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from src import __version__
from src.core.config import get_settings
from src.infrastructure.database.connection import check_database_connection, get_engine
from src.infrastructure.database.migrations.runner import REVISIONS, schema_revision
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

_started = time.monotonic()

ComponentStatus = Literal["healthy", "degraded", "unhealthy"]


class ComponentHealth(BaseModel):
    status: ComponentStatus
    latency_ms: float | None = None
    message: str | None = None


class ComponentsHealth(BaseModel):
    database: ComponentHealth
    schema_: ComponentHealth | None = Field(default=None, alias="schema")

    model_config = {"populate_by_name": True}


class HealthResponse(BaseModel):
    """Overall status is the worst component status."""

    status: ComponentStatus
    version: str
    environment: str
    uptime_seconds: int
    checked_at: datetime
    components: ComponentsHealth


class ReadinessResponse(BaseModel):
    ready: bool
    checks: dict[str, Any]


async def check_database() -> ComponentHealth:
    """Ping the gradebook database."""
    started = time.perf_counter()
    reachable = await check_database_connection()
    latency_ms = round((time.perf_counter() - started) * 1000, 2)

    if not reachable:
        logger.error("Database health check failed")
        return ComponentHealth(status="unhealthy", message="Database unreachable")
    return ComponentHealth(status="healthy", latency_ms=latency_ms)


async def check_schema() -> ComponentHealth:
    """Compare the applied migration with the newest known one."""
    latest = REVISIONS[-1]
    try:
        current = await schema_revision(get_engine())
    except SQLAlchemyError as e:
        logger.warning("Schema revision check failed: %s", e)
        return ComponentHealth(status="unhealthy", message="Schema revision unavailable")

    if current != latest:
        return ComponentHealth(
            status="degraded",
            message=f"Schema at {current or 'no revision'}, latest is {latest}",
        )
    return ComponentHealth(status="healthy", message=latest)


def _worst(*components: ComponentHealth | None) -> ComponentStatus:
    statuses = {c.status for c in components if c is not None}
    for candidate in ("unhealthy", "degraded"):
        if candidate in statuses:
            return candidate
    return "healthy"


@router.get("/health", response_model=HealthResponse, response_model_by_alias=True)
async def health_check() -> HealthResponse:
    """Report version, uptime and component health."""
    database = await check_database()
    schema = await check_schema() if database.status == "healthy" else None

    return HealthResponse(
        status=_worst(database, schema),
        version=__version__,
        environment=get_settings().environment,
        uptime_seconds=int(time.monotonic() - _started),
        checked_at=utc_now(),
        components=ComponentsHealth(database=database, schema_=schema),
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Answer 503 while the database is unreachable."""
    database = await check_database()
    ready = database.status == "healthy"
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(ready=ready, checks={"database": database.model_dump()})


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
