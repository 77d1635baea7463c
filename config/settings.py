"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # EPW ATTRIBUTES API
    # ===================
    epw_attributes_url: str = Field(
        default="https://pituxa.epw.pt/api/atributos",
        description="Base URL of the remote attributes service"
    )
    epw_http_timeout_seconds: float = Field(
        default=8.0,
        gt=0,
        le=60,
        description="Timeout for a single attribute fetch"
    )
    attribute_cache_ttl_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Minutes an in-memory attribute list stays fresh"
    )
    preload_attributes_on_startup: bool = Field(
        default=False,
        description="Warm every attribute class when the app starts"
    )

    # ===================
    # STORAGE
    # ===================
    store_backend: str = Field(
        default="file",
        pattern="^(file|memory|supabase)$",
        description="Key-value backend for exceptions and attribute cache"
    )
    store_path: str = Field(
        default="data/epw_store.json",
        description="JSON file used by the file backend"
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: Optional[str] = Field(
        None,
        description="Supabase project URL (supabase backend only)"
    )
    supabase_key: Optional[str] = Field(
        None,
        description="Supabase anon/public key"
    )
    supabase_kv_table: str = Field(
        default="kv_store",
        description="Table holding key/value rows"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def attribute_cache_ttl_seconds(self) -> int:
        return self.attribute_cache_ttl_minutes * 60

    @property
    def persisted_cache_ttl_seconds(self) -> int:
        """Second-tier cache lives twice as long as the in-memory one."""
        return self.attribute_cache_ttl_seconds * 2

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
