"""
Application configuration — environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

BASE_DIR = Path(__file__).parent


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    # Database: SQLite (default) or PostgreSQL (set DATABASE_URL=postgresql://...)
    DATABASE = os.environ.get("DATABASE_URL", str(BASE_DIR / "lexiquest.db"))
    JSON_SORT_KEYS = False

    # Identity: an upstream auth proxy puts the authenticated profile id here
    AUTH_HEADER = os.environ.get("AUTH_HEADER", "X-Student-Id")

    # Text generation
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
    GENERATION_MODEL = os.environ.get("GENERATION_MODEL", "gemini-2.0-flash")

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Redis (RQ side effects)
    REDIS_URL = os.environ.get("REDIS_URL", "")

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"

    # Engine tunables
    UNIQUENESS_SCAN_LIMIT = int(os.environ.get("UNIQUENESS_SCAN_LIMIT", "1500"))
    STREAK_LOOKBACK = int(os.environ.get("STREAK_LOOKBACK", "365"))
    DUEL_ROUND_COUNT = int(os.environ.get("DUEL_ROUND_COUNT", "5"))
    DUEL_POLL_SECONDS = int(os.environ.get("DUEL_POLL_SECONDS", "3"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if not cls.AUTH_HEADER:
            errors.append("AUTH_HEADER must name the identity header set by the auth proxy.")

        if not cls.GOOGLE_API_KEY:
            warnings.warn("GOOGLE_API_KEY is not set — definition generation will be unavailable.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    RATELIMIT_ENABLED = False
    REDIS_URL = ""


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
