"""
Configuration and settings for the storage service.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_KEY = "sdmfpippdc:storage:v1"
PING_KEY = "sdmfpippdc:ping:v1"

# Query parameters Prisma understands but libpq rejects.
PRISMA_ONLY_PARAMS = {"pgbouncer", "schema", "connection_limit", "pool_timeout"}


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Recognized Postgres variables (Vercel Postgres / Neon naming)
    postgres_url: Optional[str] = Field(default=None, validation_alias="POSTGRES_URL")
    postgres_prisma_url: Optional[str] = Field(
        default=None, validation_alias="POSTGRES_PRISMA_URL"
    )
    postgres_url_non_pooling: Optional[str] = Field(
        default=None, validation_alias="POSTGRES_URL_NON_POOLING"
    )
    postgres_host: Optional[str] = Field(default=None, validation_alias="POSTGRES_HOST")
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # Used only when POSTGRES_HOST is the sole connection hint
    postgres_user: Optional[str] = Field(default=None, validation_alias="POSTGRES_USER")
    postgres_password: Optional[str] = Field(
        default=None, validation_alias="POSTGRES_PASSWORD"
    )
    postgres_database: Optional[str] = Field(
        default=None, validation_alias="POSTGRES_DATABASE"
    )
    postgres_port: Optional[int] = Field(default=None, validation_alias="POSTGRES_PORT")

    storage_key: str = Field(default=STORAGE_KEY, validation_alias="STORAGE_KEY")
    ping_key: str = Field(default=PING_KEY, validation_alias="PING_KEY")

    # Development toggles
    use_in_memory_backend: bool = Field(
        default=False, validation_alias="STORAGE_USE_IN_MEMORY_BACKEND"
    )


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration resolved once at service start."""

    postgres_url: Optional[str]
    has_postgres_url: bool
    has_postgres_prisma_url: bool
    has_postgres_url_non_pooling: bool
    has_postgres_host: bool
    has_database_url: bool
    connection_url: Optional[str] = None

    @property
    def has_database_config(self) -> bool:
        return (
            self.has_postgres_url
            or self.has_postgres_prisma_url
            or self.has_postgres_url_non_pooling
            or self.has_postgres_host
            or self.has_database_url
        )


def normalize_database_url(url: str) -> str:
    """Map libpq style URLs onto something SQLAlchemy accepts."""
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    parts = urlsplit(url)
    if not parts.query:
        return url
    params = [
        (name, value)
        for name, value in parse_qsl(parts.query, keep_blank_values=True)
        if name not in PRISMA_ONLY_PARAMS
    ]
    return urlunsplit(parts._replace(query=urlencode(params)))


def _url_from_host(settings: Settings) -> str:
    user = quote(settings.postgres_user or "postgres", safe="")
    password = settings.postgres_password
    credentials = f"{user}:{quote(password, safe='')}" if password else user
    host = settings.postgres_host
    if settings.postgres_port:
        host = f"{host}:{settings.postgres_port}"
    database = settings.postgres_database or "postgres"
    return f"postgresql://{credentials}@{host}/{database}"


def resolve_database_config(settings: Settings) -> DatabaseConfig:
    """
    Resolve connection settings without touching the process environment.

    DATABASE_URL fills the primary POSTGRES_URL slot when the latter is unset.
    Presence flags report the raw variables, before that fallback.
    """
    primary = settings.postgres_url or settings.database_url or None

    connection_url: Optional[str] = None
    for candidate in (
        primary,
        settings.postgres_url_non_pooling,
        settings.postgres_prisma_url,
    ):
        if candidate:
            connection_url = normalize_database_url(candidate)
            break
    if connection_url is None and settings.postgres_host:
        connection_url = _url_from_host(settings)

    return DatabaseConfig(
        postgres_url=primary,
        has_postgres_url=bool(settings.postgres_url),
        has_postgres_prisma_url=bool(settings.postgres_prisma_url),
        has_postgres_url_non_pooling=bool(settings.postgres_url_non_pooling),
        has_postgres_host=bool(settings.postgres_host),
        has_database_url=bool(settings.database_url),
        connection_url=connection_url,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


@lru_cache(maxsize=1)
def get_database_config() -> DatabaseConfig:
    """Return the database configuration resolved from cached settings."""
    return resolve_database_config(get_settings())
