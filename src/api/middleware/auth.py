# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bearer token authentication and request log context.

For every request the middleware:

1. takes ``X-Request-ID`` from the request (or generates one), binds it to
   the log context and echoes it on the response;
2. outside ``PUBLIC_PATHS``, verifies the bearer token and stores the caller
   on ``request.state.user`` (None when the token is absent or rejected;
   ``require_auth`` turns that into a 401);
3. clears the log context once the response is produced.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.config import get_settings
from src.domains.auth.jwt import JWTError, JWTManager, TokenPayload
from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({
    "/",
    "/health",
    "/health/ready",
    "/health/live",
    "/docs",
    "/redoc",
    "/openapi.json",
})

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller.

    ``id`` is the token subject; it is what mutations record as the actor.
    """

    id: str
    user_type: str | None = None
    roles: list[str] = field(default_factory=list)
    school_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: TokenPayload) -> "CurrentUser":
        return cls(
            id=payload.sub,
            user_type=payload.user_type,
            roles=list(payload.roles),
            school_ids=list(payload.school_ids),
        )

    def has_role(self, role: str) -> bool:
        return role in self.roles


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or " " in token.strip():
        return None
    return token.strip()


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolve the caller from the bearer token and bind the log context."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._jwt_manager = JWTManager(get_settings().jwt)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.user = None
        bind_context(request_id=request_id)

        try:
            if request.url.path not in PUBLIC_PATHS:
                request.state.user = self._authenticate(request)
            response = await call_next(request)
        finally:
            clear_context()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _authenticate(self, request: Request) -> CurrentUser | None:
        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            return None

        try:
            payload = self._jwt_manager.decode_token(token, expected_type="access")
        except JWTError as e:
            logger.debug("Bearer token rejected on %s: %s", request.url.path, e)
            return None

        bind_context(user_id=payload.sub)
        return CurrentUser.from_payload(payload)


def get_current_user(request: Request) -> CurrentUser | None:
    """Caller stored by AuthMiddleware, or None."""
    return getattr(request.state, "user", None)
