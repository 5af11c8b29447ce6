"""
Client Configuration
Loads settings from environment variables with sensible defaults.
"""

from datetime import timedelta
from pathlib import Path
from typing import Dict, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Only load .env if it exists to avoid permission errors
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # Storefront Configuration
    rohlik_base_url: str = "https://www.rohlik.cz"
    rohlik_api_prefix: str = "/api"

    # Authentication (optional - for running against a real account)
    rohlik_email: Optional[str] = None
    rohlik_password: Optional[str] = None

    # HTTP Configuration
    request_timeout: float = 30.0
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    accept_language: str = "cs-CZ,cs;q=0.9,en;q=0.8"

    # Rate Limiting
    rate_limit_requests_per_minute: int = 30

    # Session Management
    session_timeout_minutes: int = 30

    # Entity cache lifetimes
    product_cache_ttl_seconds: int = 600
    order_cache_ttl_seconds: int = 300
    cart_cache_ttl_seconds: int = 60
    delivery_area_cache_ttl_seconds: int = 3600

    # Storefront business rules
    currency: str = "CZK"
    min_order_value: int = 500
    product_batch_size: int = 5

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("rohlik_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("rate_limit_requests_per_minute", "session_timeout_minutes", "product_batch_size")
    @classmethod
    def must_be_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def session_timeout(self) -> timedelta:
        """Sliding session lifetime."""
        return timedelta(minutes=self.session_timeout_minutes)

    @property
    def cache_ttls(self) -> Dict[str, int]:
        """TTL in seconds per cached entity kind."""
        return {
            "product": self.product_cache_ttl_seconds,
            "order": self.order_cache_ttl_seconds,
            "cart": self.cart_cache_ttl_seconds,
            "delivery_area": self.delivery_area_cache_ttl_seconds,
        }

    @property
    def has_credentials(self) -> bool:
        return bool(self.rohlik_email and self.rohlik_password)

    def credentials(self) -> Optional[Dict[str, str]]:
        """Configured account credentials, or None when not both are set."""
        if not self.has_credentials:
            return None
        return {"email": self.rohlik_email, "password": self.rohlik_password}

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return Path(__file__).parent.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "rohlik.log"

