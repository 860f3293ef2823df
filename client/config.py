"""Client configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.app.constants import DEFAULT_PAGE_SIZE


class ClientSettings(BaseSettings):
    """Preset client settings loaded from ``PRESET_CLIENT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PRESET_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = "http://localhost:8000/api"
    # Calls still pending after this long are treated as failed and reverted
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)


@lru_cache
def get_client_settings() -> ClientSettings:
    """Get cached client settings instance."""
    return ClientSettings()
