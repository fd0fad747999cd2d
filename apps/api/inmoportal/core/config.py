"""Application configuration for the property catalog service."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    database_url: str = Field(default="sqlite+aiosqlite:///./inmoportal.db")
    database_ssl_required: bool = Field(default=False)

    storage_root: str = Field(default="./storage")
    storage_bucket: str = Field(default="images")
    storage_public_url: str = Field(default="http://localhost:8000/storage")

    functions_url: str = Field(default="http://localhost:8000/functions/v1")
    functions_api_key: str = Field(default="")
    notification_timeout_seconds: float = Field(default=5.0, gt=0)
    admin_notification_email: str = Field(default="")

    cache_path: str = Field(default="./.cache/query-cache.json")
    cache_storage_key: str = Field(default="REAL_ESTATE_QUERY_CACHE")
    cache_default_stale_seconds: float = Field(default=60 * 60 * 24)
    cache_gc_seconds: float = Field(default=60 * 60 * 24)
    cache_retry: int = Field(default=1, ge=0)
    company_profile_stale_seconds: float = Field(default=60 * 15)
    listing_stale_seconds: float = Field(default=60 * 5)

    smtp_host: str = Field(default="smtp.sendgrid.net")
    smtp_port: int = Field(default=587)
    smtp_username: str = Field(default="apikey")
    smtp_password: str = Field(default="")
    smtp_from: str = Field(default="noreply@example.com")
    smtp_use_tls: bool = Field(default=True)
    company_name: str = Field(default="Portal Inmobiliario")
    company_phone: str = Field(default="+56 9 1234 5678")
    company_email: str = Field(default="contacto@example.com")
    website_url: str = Field(default="http://localhost:8000")

    fallback_image_url: str = Field(
        default="https://images.pexels.com/photos/106399/pexels-photo-106399.jpeg"
    )

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: object) -> object:
        """Allow comma-separated env values for CORS origins."""

        if isinstance(value, str):
            parts = [item.strip() for item in value.split(",") if item.strip()]
            return parts
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
