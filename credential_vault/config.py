"""
Application settings, read from the environment into pydantic models.

The encryption key is stored here exactly as found in the environment. It is
parsed and checked by the encryption helpers on first use, so a bad key stops
credential operations while configuration and logging still come up.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .constants import Encryption, EnvironmentVariable, LogLevel, QueueName, Timeouts


def _env(variable: EnvironmentVariable, default: Optional[str] = None):
    return lambda: os.getenv(variable.value, default)


def _env_flag(variable: EnvironmentVariable):
    # Only the literal string "true" (any case) switches a flag on
    return lambda: os.getenv(variable.value, "").lower() == "true"


class DatabaseConfig(BaseModel):
    connection_string: str = Field(
        default_factory=_env(EnvironmentVariable.DATABASE_URL, "sqlite:///./credential_vault.db")
    )
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = Field(default=30, description="Seconds to wait for a pooled connection")
    echo: bool = False


class QueueConfig(BaseModel):
    """Storage queue that receives shipped log entries."""

    connection_string: str = Field(
        default_factory=_env(EnvironmentVariable.AZURE_STORAGE_CONNECTION, "")
    )
    logs_queue_name: str = QueueName.LOGS.value


class LoggingConfig(BaseModel):
    level: str = Field(default_factory=_env(EnvironmentVariable.LOG_LEVEL, LogLevel.INFO.value))

    @field_validator("level")
    def normalise_level(cls, v: str) -> str:
        level = v.upper()
        allowed = [member.value for member in LogLevel]
        if level not in allowed:
            raise ValueError(f"Unknown log level {v!r}; expected one of {', '.join(allowed)}")
        return level


class FeatureFlags(BaseModel):
    enable_logs_queue: bool = Field(default_factory=_env_flag(EnvironmentVariable.ENABLE_LOGS_QUEUE))


class SecurityConfig(BaseModel):
    """Master key material. Hidden from ``repr``."""

    encryption_key: Optional[str] = Field(
        default_factory=_env(EnvironmentVariable.CREDENTIAL_ENCRYPTION_KEY),
        description="AES-256 key, 64 hex characters",
        repr=False,
    )
    encryption_key_version: int = Encryption.KEY_VERSION


class OAuthConfig(BaseModel):
    refresh_buffer_seconds: int = Field(
        default=Timeouts.TOKEN_REFRESH_BUFFER,
        description="Tokens expiring sooner than this are refreshed before use",
    )
    token_request_timeout: int = Timeouts.EXTERNAL_API_CALL


class PaymentConfig(BaseModel):
    webhook_secret: Optional[str] = Field(
        default_factory=_env(EnvironmentVariable.PAYMENT_WEBHOOK_SECRET), repr=False
    )
    # Signs the order_id|payment_id pair returned to checkout
    key_secret: Optional[str] = Field(
        default_factory=_env(EnvironmentVariable.PAYMENT_KEY_SECRET), repr=False
    )


class AppConfig(BaseModel):
    """All settings for one process."""

    environment: str = Field(default_factory=_env(EnvironmentVariable.APP_ENV, "development"))
    debug: bool = Field(default_factory=_env_flag(EnvironmentVariable.DEBUG))

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    oauth: OAuthConfig = Field(default_factory=OAuthConfig)
    payment: PaymentConfig = Field(default_factory=PaymentConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls()


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Process-wide settings, built from the environment on first call."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    global _config
    _config = config


def reset_config() -> None:
    global _config
    _config = None
