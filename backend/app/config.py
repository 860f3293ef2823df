"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.app.constants import DEFAULT_PAGE_SIZE


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Preset Store"
    app_env: Literal["development", "production", "testing"] = "development"
    debug: bool = True

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "preset_store"
    postgres_password: str = "preset_store_dev"
    postgres_db: str = "preset_store"
    # Plain strings so tests can point at SQLite; assembled from postgres_* when unset
    database_url: str | None = Field(default=None, validate_default=True)
    # Synchronous URL used by the Celery worker
    sync_database_url: str | None = Field(default=None, validate_default=True)

    @field_validator("database_url", "sync_database_url", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: str | None, info) -> str:
        if v is not None:
            return v
        scheme = "postgresql+asyncpg" if info.field_name == "database_url" else "postgresql"
        return (
            f"{scheme}://{info.data['postgres_user']}:"
            f"{info.data['postgres_password']}@{info.data['postgres_host']}:"
            f"{info.data['postgres_port']}/{info.data['postgres_db']}"
        )

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_url: RedisDsn | None = Field(default=None, validate_default=True)

    @field_validator("redis_url", mode="before")
    @classmethod
    def assemble_redis_connection(cls, v: str | None, info) -> str:
        if v is not None:
            return v
        return f"redis://{info.data['redis_host']}:{info.data['redis_port']}/{info.data['redis_db']}"

    # Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None

    # Frontend
    frontend_url: str = "http://localhost:3000"

    # Preset listings
    preset_page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    preset_page_size_max: int = Field(default=50, ge=1)
    preset_name_max_length: int = Field(default=100, ge=1)

    # Row-lock wait on PostgreSQL before a toggle fails as transient
    db_lock_timeout_ms: int = Field(default=5000, ge=0)

    # Reaction toggles: attempts before a lost compare-and-swap is reported as transient
    toggle_max_attempts: int = Field(default=3, ge=1)

    # Reaction count audit (Celery beat)
    reaction_reconcile_interval_seconds: float = 3600.0
    reaction_reconcile_repair: bool = False

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_testing(self) -> bool:
        return self.app_env == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
