"""Names, sizes and thresholds used across the vault."""

import re
from enum import Enum


class QueueName(str, Enum):
    """Standard queue names used by the package."""

    LOGS = "logs-queue"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    DATABASE_URL = "DATABASE_URL"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    DEBUG = "DEBUG"
    ENABLE_LOGS_QUEUE = "ENABLE_LOGS_QUEUE"
    CREDENTIAL_ENCRYPTION_KEY = "CREDENTIAL_ENCRYPTION_KEY"
    PAYMENT_WEBHOOK_SECRET = "PAYMENT_WEBHOOK_SECRET"
    PAYMENT_KEY_SECRET = "PAYMENT_KEY_SECRET"


class OAuthGrantType(str, Enum):
    """OAuth 2.0 grant types used by the vault."""

    REFRESH_TOKEN = "refresh_token"


class PaymentEvent(str, Enum):
    """Payment gateway webhook events the vault reacts to."""

    PAYMENT_CAPTURED = "payment.captured"
    CHECKOUT_VERIFIED = "checkout.verified"


# Encryption parameters (AES-256-GCM)
class Encryption:
    """Sizes for the credential encryption primitive."""

    KEY_HEX_LENGTH = 64
    KEY_BYTES = 32
    IV_BYTES = 16
    TAG_BYTES = 16
    KEY_VERSION = 1


# Time-related constants (in seconds)
class Timeouts:
    """Timeout and buffer values in seconds."""

    TOKEN_REFRESH_BUFFER = 5 * 60
    EXTERNAL_API_CALL = 30


class Limits:
    """System limits and thresholds."""

    PLATFORM_SLUG_MAX_LENGTH = 50
    UPSTREAM_BODY_MAX_CHARS = 500
    SIGNATURE_LOG_PREFIX_CHARS = 8
    # Longest token lifetime accepted from a provider (ten years)
    TOKEN_LIFETIME_MAX_SECONDS = 10 * 365 * 24 * 60 * 60


PLATFORM_SLUG_PATTERN = re.compile(r"[a-z0-9_]+")
