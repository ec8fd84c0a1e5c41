"""
Application configuration using pydantic-settings.
All settings read from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Central configuration for the shield review service."""

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "shield-review"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Resolver / Rules Backend ─────────────────────────────
    RESOLVER_BASE_URL: str = "http://localhost:8923"
    RESOLVER_TIMEOUT_SECONDS: float = 30.0
    RESOLVER_API_KEY: Optional[str] = None

    # ── Session Durability ───────────────────────────────────
    # One of: memory, file, redis
    SESSION_STORE_BACKEND: str = "memory"
    SESSION_STORE_ROOT: str = "/data/review_sessions"
    REDIS_URL: str = "redis://localhost:6379/0"
    SESSION_KEY_PREFIX: str = "cleanup_overrides_"
    SESSION_TTL_SECONDS: int = 86400

    # ── Zone Conflict Policy ─────────────────────────────────
    ZONE_OVERLAP_WARN_THRESHOLD: float = 0.05
    ZONE_OVERLAP_BLOCK_THRESHOLD: float = 0.10
    CRITICAL_ZONE_TYPES: str = "LineItems,Totals"

    # Drawn shields narrower/shorter than this (normalised) are rejected
    MIN_SHIELD_SIZE: float = 0.01

    # ── Observability ────────────────────────────────────────
    SENTRY_DSN: Optional[str] = None
    PROMETHEUS_ENABLED: bool = True

    # ── Security ─────────────────────────────────────────────
    API_KEY: Optional[str] = None
    CORS_ORIGINS: str = "*"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @property
    def critical_zone_types(self) -> list[str]:
        return [z.strip() for z in self.CRITICAL_ZONE_TYPES.split(",") if z.strip()]


# Singleton instance
settings = Settings()
