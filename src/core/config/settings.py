# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Environment-driven configuration for the gradebook backend.

Every concern has its own ``BaseSettings`` class and environment prefix
(``DB_``, ``JWT_``, ``CORS_``, ``API_``, ``GRADEBOOK_``). ``Settings``
aggregates them together with the environment name, the debug flag and
the log level, and ``get_settings()`` caches one instance per process.

Example:
    >>> settings = get_settings()
    >>> settings.gradebook.annual_average_ignore_missing_terms
    False
"""

from functools import lru_cache
from typing import Any, Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

DEFAULT_JWT_SECRET = "change-this-in-production"


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection for gradebook documents and school tables.

    ``DB_URL`` replaces the assembled URL entirely, which is how tests and
    local runs point the service at another database.
    """

    model_config = SettingsConfigDict(env_prefix="DB_", extra="ignore")

    user: str = "gradebook"
    password: SecretStr = SecretStr("gradebook_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "gradebook"
    url_override: str | None = Field(default=None, validation_alias="DB_URL")

    pool_size: int = 10
    max_overflow: int = 20
    pool_recycle_seconds: int = 1800
    echo: bool = False
    auto_migrate: bool = False

    @property
    def url(self) -> str:
        """Async SQLAlchemy URL (asyncpg driver unless overridden)."""
        if self.url_override:
            return self.url_override
        secret = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{secret}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """The same database with the async driver suffix dropped, for alembic."""
        url = make_url(self.url)
        backend = url.get_backend_name()
        return url.set(drivername=backend).render_as_string(hide_password=False)

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.url).get_backend_name() == "sqlite"

    def engine_options(self) -> dict[str, Any]:
        """Keyword arguments for ``create_async_engine``.

        Pool sizing only applies to server databases.
        """
        options: dict[str, Any] = {"echo": self.echo}
        if not self.is_sqlite:
            options.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_recycle=self.pool_recycle_seconds,
                pool_pre_ping=True,
            )
        return options


class JWTSettings(BaseSettings):
    """Verification of access tokens issued by the school identity provider.

    Attributes:
        secret_key: Shared HMAC secret.
        algorithm: Signing algorithm.
        issuer: Required ``iss`` claim, unchecked when unset.
        audience: Required ``aud`` claim, unchecked when unset.
        leeway_seconds: Clock skew tolerated on ``exp`` and ``iat``.
        access_token_expire_minutes: Lifetime of tokens minted locally.
    """

    model_config = SettingsConfigDict(env_prefix="JWT_", extra="ignore")

    secret_key: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    algorithm: str = "HS256"
    issuer: str | None = None
    audience: str | None = None
    leeway_seconds: int = Field(default=30, ge=0)
    access_token_expire_minutes: int = Field(default=30, gt=0)


class CORSSettings(BaseSettings):
    """Cross-origin access for the school web clients."""

    model_config = SettingsConfigDict(env_prefix="CORS_", extra="ignore")

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    allow_headers: list[str] = ["Authorization", "Content-Type", "If-Match", "X-Request-ID"]

    @property
    def origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """uvicorn server options used by ``src.main``."""

    model_config = SettingsConfigDict(env_prefix="API_", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = Field(default=2, ge=1)
    reload: bool = False


class GradebookSettings(BaseSettings):
    """Gradebook behaviour switches.

    Attributes:
        annual_average_ignore_missing_terms: Exclude terms without an
            evaluation record from the annual average denominator instead
            of counting them as zero.
        validate_attendance_roster: Reject attendance entries for students
            outside the classroom roster.
        student_sort_locale: Locale used to collate student names.
    """

    model_config = SettingsConfigDict(
        env_prefix="GRADEBOOK_",
        extra="ignore",
    )

    annual_average_ignore_missing_terms: bool = False
    validate_attendance_roster: bool = True
    student_sort_locale: str = "pt_BR.UTF-8"


class Settings(BaseSettings):
    """Root settings. Obtain the cached instance through ``get_settings()``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)
    gradebook: GradebookSettings = Field(default_factory=GradebookSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Refuse to run production with the development JWT secret or debug on."""
        if self.environment != "production":
            return self
        if self.jwt.secret_key.get_secret_value() == DEFAULT_JWT_SECRET:
            raise ValueError(
                "JWT secret key must be changed from default in production. "
                "Set JWT_SECRET_KEY environment variable."
            )
        if self.debug:
            raise ValueError("DEBUG must be off in production")
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
