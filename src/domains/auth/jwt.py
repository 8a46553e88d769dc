# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bearer token verification with python-jose.

Teachers and coordinators sign in at the school identity provider, which
issues HMAC-signed access tokens. This service verifies the signature,
the expiry (with ``JWTSettings.leeway_seconds`` of clock skew) and, when
configured, the issuer and audience. The subject becomes the actor id
recorded in log lines and on coordinator approvals.

Example:
    >>> claims = JWTManager(get_settings().jwt).decode_token(token)
    >>> claims.sub
    'teacher-123'
"""

import logging
import secrets
import time
from typing import Any, Literal
from uuid import UUID

from jose import ExpiredSignatureError, JWTError as JoseJWTError, jwt
from pydantic import BaseModel, ValidationError

from src.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """Verified claims of an access token.

    Attributes:
        sub: Caller id.
        type: Token type; the API only accepts ``access``.
        user_type: teacher, coordinator or manager.
        roles: Role codes, e.g. ``coordinator``.
        school_ids: Schools the caller works in.
        exp: Expiry, seconds since the epoch.
        iat: Issue time, seconds since the epoch.
        jti: Token id.
    """

    sub: str
    type: Literal["access", "refresh"] = "access"
    user_type: str | None = None
    roles: list[str] = []
    school_ids: list[str] = []
    exp: int
    iat: int
    jti: str | None = None


class JWTError(Exception):
    """Token could not be accepted."""


class TokenExpiredError(JWTError):
    """Token is past its ``exp`` claim."""


class InvalidTokenError(JWTError):
    """Token is malformed, badly signed, of the wrong type or audience."""


class JWTManager:
    """Verifies access tokens and mints them for local tooling."""

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    @property
    def _key(self) -> str:
        return self._settings.secret_key.get_secret_value()

    def create_access_token(
        self,
        user_id: str | UUID,
        user_type: str | None = None,
        roles: list[str] | None = None,
        school_ids: list[str | UUID] | None = None,
    ) -> str:
        """Mint an access token the way the identity provider does.

        Args:
            user_id: Caller id (``sub``).
            user_type: teacher, coordinator or manager.
            roles: Role codes.
            school_ids: Schools the caller works in.

        Returns:
            Encoded token.
        """
        issued_at = int(time.time())
        claims: dict[str, Any] = {
            "sub": str(user_id),
            "type": "access",
            "user_type": user_type,
            "roles": roles or [],
            "school_ids": [str(s) for s in school_ids or []],
            "iat": issued_at,
            "exp": issued_at + self._settings.access_token_expire_minutes * 60,
            "jti": secrets.token_urlsafe(16),
        }
        if self._settings.issuer:
            claims["iss"] = self._settings.issuer
        if self._settings.audience:
            claims["aud"] = self._settings.audience
        return jwt.encode(claims, self._key, algorithm=self._settings.algorithm)

    def decode_token(
        self,
        token: str,
        expected_type: Literal["access", "refresh"] | None = "access",
    ) -> TokenPayload:
        """Verify a token and return its claims.

        Args:
            token: Encoded token.
            expected_type: Required ``type`` claim, or None to accept any.

        Raises:
            TokenExpiredError: If ``exp`` has passed beyond the leeway.
            InvalidTokenError: On any other verification failure.
        """
        try:
            raw = jwt.decode(
                token,
                self._key,
                algorithms=[self._settings.algorithm],
                audience=self._settings.audience,
                issuer=self._settings.issuer,
                options={
                    "leeway": self._settings.leeway_seconds,
                    "verify_aud": self._settings.audience is not None,
                },
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JoseJWTError as e:
            logger.warning("Token rejected: %s", e)
            raise InvalidTokenError(f"Invalid token: {e}") from e

        token_type = raw.get("type", "access")
        if expected_type is not None and token_type != expected_type:
            raise InvalidTokenError(f"Expected {expected_type} token, got {token_type}")

        try:
            return TokenPayload.model_validate(raw)
        except ValidationError as e:
            logger.warning("Token claims rejected: %s", e)
            raise InvalidTokenError("Invalid token claims") from e
