# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging for the gradebook backend.

structlog renders every record, including the ones emitted through
``logging.getLogger(__name__)``: a colored console in development, one JSON
object per line elsewhere. Context bound with :func:`bind_context` (the
request id, the caller and the gradebook being worked on) is merged into
each line until :func:`clear_context` runs at the end of the request.

Example:
    >>> setup_logging(get_settings())
    >>> bind_gradebook(gradebook_id, term_id=term_id)
    >>> logging.getLogger(__name__).info("Lesson added: %s", lesson_id)
"""

import logging
import sys
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from src.core.config.settings import Settings

SERVICE_NAME = "gradebook-api"

NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "sqlalchemy",
    "sqlalchemy.engine",
    "alembic",
    "asyncio",
)


def _stringify_ids(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Render UUID values as plain strings so the JSON renderer accepts them."""
    for key, value in event_dict.items():
        if isinstance(value, UUID):
            event_dict[key] = str(value)
    return event_dict


def _service_stamp(environment: str) -> Processor:
    def add_service(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_service


def _shared_processors(settings: "Settings") -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _stringify_ids,
    ]
    if not _uses_console(settings):
        processors += [
            _service_stamp(settings.environment),
            structlog.processors.format_exc_info,
        ]
    return processors


def _uses_console(settings: "Settings") -> bool:
    return settings.is_development or settings.debug


def setup_logging(settings: "Settings") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        settings: Application settings; ``log_level``, ``debug`` and
            ``environment`` pick the level and the renderer.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    shared = _shared_processors(settings)

    renderer: Processor
    if _uses_console(settings):
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("src").setLevel(level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for key-value style logging."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values to every log line emitted in the current context.

    Args:
        **kwargs: Key-value pairs such as ``request_id`` or ``user_id``.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def bind_gradebook(gradebook_id: UUID, **ids: UUID | None) -> None:
    """Bind the gradebook (and optionally term/lesson) being worked on.

    None values are skipped.
    """
    bind_context(
        gradebook_id=str(gradebook_id),
        **{key: str(value) for key, value in ids.items() if value is not None},
    )


def clear_context() -> None:
    """Drop everything bound in the current context."""
    structlog.contextvars.clear_contextvars()
