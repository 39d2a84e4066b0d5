"""
FraudWatch configuration management using pydantic-settings.

Every field can be set from the environment (e.g. THRESHOLD_AMOUNT=90000)
or a local .env file.
"""

import logging
import warnings

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """FraudWatch runtime settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(
        default="development",
        description="Deployment stage: development, staging or production",
    )
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO", description="Root log level name")

    # Snapshot source
    transactions_api_url: str = Field(
        default="http://localhost:8944/api/transactions/intervals",
        description="Endpoint returning time-bucketed customer transactions",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for snapshot retrieval requests",
    )

    # Refresh scheduling
    scheduler_enabled: bool = Field(
        default=True,
        description="Run the periodic refresh loop on startup",
    )
    refresh_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between timer-driven refreshes",
    )

    # Detection thresholds (defaults, adjustable per invocation)
    high_frequency_threshold: int = Field(
        default=5,
        ge=0,
        description="Transactions per customer interval above which HIGH_FREQUENCY is raised",
    )
    threshold_amount: float = Field(
        default=95_000,
        ge=0,
        description="Lower bound of the threshold-avoidance band (upper bound is 100,000)",
    )

    # Dashboard front end
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Origins allowed to call the API from a browser",
    )
    cors_allow_credentials: bool = Field(default=True)

    # Per-client request budget
    rate_limit_requests: int = Field(default=100, gt=0)
    rate_limit_window_seconds: int = Field(default=60, gt=0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise the log level and reject unknown names."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Refuse debug mode in production and warn about a local snapshot source."""
        if not self.is_production:
            return self
        if self.debug:
            raise ValueError("DEBUG must be disabled when ENVIRONMENT=production")
        if "localhost" in self.transactions_api_url:
            warnings.warn(
                "TRANSACTIONS_API_URL points at localhost in production",
                UserWarning,
                stacklevel=2,
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
