"""
Configuration management for Kraken clients
"""

from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

from .base_models import KrakenCredentials


DEFAULT_REST_URL = "https://api.kraken.com"
DEFAULT_WS_URL = "wss://ws.kraken.com/v2"
DEFAULT_WS_AUTH_URL = "wss://ws-auth.kraken.com/v2"


class KrakenSettings(BaseSettings):
    """Client settings loaded from KRAKEN_* environment variables or a .env file"""

    # Credentials (private endpoints only)
    api_key: Optional[str] = None
    api_secret: Optional[SecretStr] = None

    # Endpoints
    base_url: str = DEFAULT_REST_URL
    ws_url: str = DEFAULT_WS_URL
    ws_auth_url: str = DEFAULT_WS_AUTH_URL

    # Rate limiting: capacity is rate + burst tokens, refilled at rate/second
    rate_limit_per_second: float = Field(1.0, description="Steady token refill rate")
    rate_limit_burst: float = Field(15.0, description="Extra tokens on top of the steady rate")
    rate_limit_public: bool = Field(False, description="Also gate public GET calls")

    # Transport
    request_timeout_seconds: Optional[float] = Field(
        None,
        description="httpx timeout for REST calls; None disables it",
    )

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @field_validator("base_url", "ws_url", "ws_auth_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("rate_limit_per_second")
    @classmethod
    def _positive_rate(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("rate_limit_per_second must be positive")
        return value

    @field_validator("rate_limit_burst")
    @classmethod
    def _non_negative_burst(cls, value: float) -> float:
        if value < 0:
            raise ValueError("rate_limit_burst must be non-negative")
        return value

    @field_validator("api_key", mode="before")
    @classmethod
    def _empty_key_is_none(cls, value: Optional[str]) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def credentials(self) -> KrakenCredentials:
        """Credentials as used by the REST dispatcher."""
        secret = self.api_secret.get_secret_value() if self.api_secret else None
        return KrakenCredentials(api_key=self.api_key, api_secret=secret or None)

    class Config:
        env_prefix = "KRAKEN_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # .env may carry unrelated application settings
