"""
config.py — Application configuration.

All settings are loaded from environment variables (via .env file).
Credentials for the model API, Product Hunt and the owner-notification service
are optional at startup; a missing value surfaces as a ConfigurationError only
when the feature that needs it is actually used.
"""

import logging
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central configuration for Alpha.

    All fields map 1-to-1 to environment variables (case-insensitive).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ─────────────────────────────────────────────
    # Application
    # ─────────────────────────────────────────────
    app_name: str = "Alpha"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False

    # ─────────────────────────────────────────────
    # Database
    # ─────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./alpha.db"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800  # recycle connections every 30 min

    # ─────────────────────────────────────────────
    # Authentication / JWT
    # ─────────────────────────────────────────────
    jwt_secret_key: str = "change-this-in-production-min-32-chars!!"
    jwt_algorithm: str = "HS256"
    access_token_expire_hours: int = 24

    # ─────────────────────────────────────────────
    # AI / LLM
    # ─────────────────────────────────────────────
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-haiku-20241022"
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_max_tokens: int = 2048

    # ─────────────────────────────────────────────
    # Information sources
    # ─────────────────────────────────────────────
    hackernews_base_url: str = "https://hacker-news.firebaseio.com/v0"
    hackernews_top_stories: int = 20
    product_hunt_api_key: str = ""   # bearer token; source skipped when empty
    product_hunt_api_url: str = "https://api.producthunt.com/v2/api/graphql"
    summary_top_articles: int = 10

    # ─────────────────────────────────────────────
    # Market data
    # ─────────────────────────────────────────────
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"

    # Outbound HTTP timeout shared by every fetcher
    http_timeout_seconds: float = 10.0

    # ─────────────────────────────────────────────
    # Owner notification
    # ─────────────────────────────────────────────
    notification_api_url: str = ""
    notification_api_key: str = ""

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.notification_api_url and self.notification_api_key)

    # ─────────────────────────────────────────────
    # Monitoring
    # ─────────────────────────────────────────────
    sentry_dsn: str = ""

    # ─────────────────────────────────────────────
    # CORS / Rate Limiting
    # ─────────────────────────────────────────────
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"
    rate_limit_general: str = "100/minute"

    # ─────────────────────────────────────────────
    # Validators
    # ─────────────────────────────────────────────

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        if len(v) < 32:
            raise ValueError("jwt_secret_key must be at least 32 characters")
        return v

    # ─────────────────────────────────────────────
    # Computed properties
    # ─────────────────────────────────────────────

    @property
    def allowed_origins_list(self) -> List[str]:
        """Return CORS origins as a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def async_database_url(self) -> str:
        """Translate sync postgres:// URLs to the asyncpg driver notation."""
        url = self.database_url
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)
        return url

    @property
    def db_ssl_args(self) -> dict:
        """Extra SQLAlchemy connect_args for SSL outside development."""
        if self.environment != "development" and "postgresql" in self.database_url:
            return {"ssl": "require"}
        return {}


@lru_cache
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    _settings = Settings()
    logger.info(
        "Config loaded — env=%s debug=%s", _settings.environment, _settings.debug
    )
    return _settings


settings = get_settings()
