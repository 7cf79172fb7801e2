"""Application configuration classes."""

from __future__ import annotations

import os

SUPPORTED_UPSTREAM_PROVIDERS = {"nrb", "mock"}
PROVIDER_ALIASES = {"nepal_rastra_bank": "nrb"}


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


class BaseConfig:
    """Base configuration shared across environments."""

    SCHEDULER_ENABLED = _get_env("SCHEDULER_ENABLED", "true").lower() == "true"
    SCHEDULER_TIMEZONE = _get_env("SCHEDULER_TIMEZONE", "UTC")
    # Regular ticks; the final tick decides whether to carry yesterday forward.
    RATES_SYNC_CRON = _get_env("RATES_SYNC_CRON", "*/30 * * * *")
    RATES_SYNC_FINAL_CRON = _get_env("RATES_SYNC_FINAL_CRON", "15 23 * * *")

    APP_NAME = "dailyfx"
    SECRET_KEY = _get_env("SECRET_KEY", "change-me")
    SQLALCHEMY_DATABASE_URI = _get_env("DATABASE_URL", "sqlite:///dailyfx.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    HOME_CURRENCY = _get_env("HOME_CURRENCY", "NPR")
    HOME_UTC_OFFSET_MINUTES = int(_get_env("HOME_UTC_OFFSET_MINUTES", "345"))

    UPSTREAM_PROVIDER = _get_env("UPSTREAM_PROVIDER", "nrb")
    NRB_API_BASE_URL = _get_env("NRB_API_BASE_URL", "https://www.nrb.org.np/api/forex/v1")
    NRB_API_PER_PAGE = int(_get_env("NRB_API_PER_PAGE", "100"))
    REQUEST_TIMEOUT_SECONDS = float(_get_env("REQUEST_TIMEOUT_SECONDS", "10"))
    UPSTREAM_MAX_CHUNK_DAYS = int(_get_env("UPSTREAM_MAX_CHUNK_DAYS", "90"))

    BACKFILL_CHUNK_DELAY_SECONDS = float(_get_env("BACKFILL_CHUNK_DELAY_SECONDS", "0.5"))
    BACKFILL_CHUNK_RETRIES = int(_get_env("BACKFILL_CHUNK_RETRIES", "1"))
    READ_PATH_TIMEOUT_SECONDS = float(_get_env("READ_PATH_TIMEOUT_SECONDS", "10"))
    BACKGROUND_WORKERS = int(_get_env("BACKGROUND_WORKERS", "2"))
    SYNC_THROTTLE_SECONDS = int(_get_env("SYNC_THROTTLE_SECONDS", "60"))

    LOG_LEVEL = _get_env("LOG_LEVEL", "INFO")
    LOG_JSON_ENABLED = _get_env("LOG_JSON_ENABLED", "false").lower() == "true"
    LOG_FORMAT = _get_env("LOG_FORMAT", "%(asctime)s %(levelname)s [%(name)s] %(message)s")
    CORS_ALLOWED_ORIGINS = _get_env("CORS_ALLOWED_ORIGINS", "*")
    CORS_ALLOWED_HEADERS = _get_env("CORS_ALLOWED_HEADERS", "Content-Type,Authorization")
    CORS_ALLOWED_METHODS = _get_env("CORS_ALLOWED_METHODS", "GET,POST,OPTIONS")
    CORS_MAX_AGE = int(_get_env("CORS_MAX_AGE", "600"))


class DevelopmentConfig(BaseConfig):
    """Configuration for local development."""

    DEBUG = True
    TESTING = False


class TestingConfig(BaseConfig):
    """Configuration used by the test-suite."""

    DEBUG = False
    TESTING = True
    SCHEDULER_ENABLED = False
    UPSTREAM_PROVIDER = "mock"
    BACKFILL_CHUNK_DELAY_SECONDS = 0.0
    READ_PATH_TIMEOUT_SECONDS = 1.0
    LOG_LEVEL = "DEBUG"


class ProductionConfig(BaseConfig):
    """Configuration for production deployments."""

    DEBUG = False
    TESTING = False


CONFIG_BY_ENV = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config(config_name: str | None = None) -> type[BaseConfig]:
    """Return the config class for the requested environment.

    Args:
        config_name: Optional explicit config identifier. If omitted, the
            APP_ENV environment variable is consulted.

    Raises:
        KeyError: If the requested configuration is not defined.
        ValueError: If the configured provider or numeric limits are invalid.
    """

    env_candidate = config_name if config_name is not None else os.getenv("APP_ENV", "development")
    env_name = (env_candidate or "development").lower()
    try:
        config_cls = CONFIG_BY_ENV[env_name]
    except KeyError as exc:
        raise KeyError(f"Unknown APP_ENV '{env_name}'") from exc

    _validate_provider(config_cls)
    _validate_limits(config_cls)
    return config_cls


def _validate_provider(config_cls: type[BaseConfig]) -> None:
    normalized = normalize_provider(config_cls.UPSTREAM_PROVIDER)
    if normalized not in SUPPORTED_UPSTREAM_PROVIDERS:
        raise ValueError(
            f"Unsupported UPSTREAM_PROVIDER '{config_cls.UPSTREAM_PROVIDER}'. "
            f"Allowed values: {sorted(SUPPORTED_UPSTREAM_PROVIDERS)}"
        )
    config_cls.UPSTREAM_PROVIDER = normalized


def _validate_limits(config_cls: type[BaseConfig]) -> None:
    if config_cls.UPSTREAM_MAX_CHUNK_DAYS <= 0:
        raise ValueError("UPSTREAM_MAX_CHUNK_DAYS must be a positive integer")
    if config_cls.BACKFILL_CHUNK_RETRIES < 0:
        raise ValueError("BACKFILL_CHUNK_RETRIES cannot be negative")
    if not -720 <= config_cls.HOME_UTC_OFFSET_MINUTES <= 840:
        raise ValueError("HOME_UTC_OFFSET_MINUTES must be a valid UTC offset in minutes")


def normalize_provider(value: str | None) -> str:
    if not value:
        return ""
    normalized = value.strip().lower()
    return PROVIDER_ALIASES.get(normalized, normalized)
