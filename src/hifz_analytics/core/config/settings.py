# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the
analytics engine. Settings are loaded from environment variables with
sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for the worker entry
points; calculators receive AnalyticsSettings explicitly.

Example:
    >>> from hifz_analytics.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.analytics.weekly_pace_target
    5.0
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration for the operational and summary tables.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full connection URL, used verbatim when set.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "hifz"
    password: SecretStr = SecretStr("hifz_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "hifz"
    url_override: str | None = Field(
        default=None,
        validation_alias="DB_URL",
    )
    pool_size: int = 5
    max_overflow: int = 10

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for the Dramatiq broker.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr | None = None
    database: int = 0

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        if self.password is None:
            return f"redis://{self.host}:{self.port}/{self.database}"
        pwd = self.password.get_secret_value()
        return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"


class WorkerSettings(BaseSettings):
    """Background worker configuration.

    Attributes:
        processes: Number of worker processes.
        threads: Number of threads per process.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        extra="ignore",
    )

    processes: int = 1
    threads: int = 2


class AnalyticsSettings(BaseSettings):
    """Thresholds and windows used by the metrics and alert calculators.

    Attributes:
        weekly_pace_target: Pages per week a student must reach to be on track.
        stagnation_threshold_days: Days without progress before a student is stagnant.
        at_risk_threshold: Composite risk score at which a student is at risk.
        overcapacity_threshold: Capacity utilization (%) that raises an alert.
        missed_sessions_threshold: Missed or late sessions that raise an alert.
        at_risk_concentration_threshold: At-risk students per teacher that raise an alert.
        cancellation_threshold: Cancellations per week that raise an alert.
        pace_drop_threshold: Drop (%) below average pace that raises an alert.
        context_lookback_days: Days of raw records loaded for one run.
        metrics_window_days: Window used for per-entity summaries.
        alert_window_days: Window used when alerts are generated standalone.
    """

    model_config = SettingsConfigDict(
        env_prefix="ANALYTICS_",
        extra="ignore",
    )

    weekly_pace_target: float = 5.0
    stagnation_threshold_days: int = 7
    at_risk_threshold: float = 50.0
    overcapacity_threshold: float = 95.0
    missed_sessions_threshold: int = 3
    at_risk_concentration_threshold: int = 5
    cancellation_threshold: float = 3.0
    pace_drop_threshold: float = 30.0

    context_lookback_days: int = 90
    metrics_window_days: int = 30
    alert_window_days: int = 7

    @model_validator(mode="after")
    def validate_positive_values(self) -> Self:
        """Reject thresholds and windows that are not strictly positive.

        Raises:
            ValueError: If any threshold or window is zero or negative.
        """
        for name, value in self.model_dump().items():
            if value <= 0:
                raise ValueError(f"Analytics setting '{name}' must be positive, got {value}")
        return self


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment.
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        redis: Redis settings.
        worker: Background worker settings.
        analytics: Metric thresholds and windows.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with the default database password.
        """
        if self.environment == "production" and self.database.url_override is None:
            if self.database.password.get_secret_value() == "hifz_password":
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DB_PASSWORD or DB_URL environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
