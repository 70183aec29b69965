"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream booking API
    booking_api_url: str = "http://localhost:8080/api/booking"
    booking_api_timeout_seconds: float = 10.0

    # Upstream retry policy (linear backoff: base_delay * attempt)
    upstream_max_retries: int = 3
    upstream_base_delay_ms: int = 1000

    # Domain expiry stamped on freshly fetched records
    default_expiry_seconds: int = 3600
    honor_upstream_expiry: bool = False

    # Persistent cache
    database_url: str = "sqlite:///./booking_cache.db"
    booking_cache_key: str = "booking_data_cache"
    cache_ttl_seconds: int = 30 * 60

    # Orchestration
    background_refresh_delay_ms: int = 100
    join_timeout_seconds: Optional[float] = None

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
