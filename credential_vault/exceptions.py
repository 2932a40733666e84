"""
Error hierarchy for the credential vault.

Every error carries a stable code, an HTTP status, a generated id and the
caller's correlation id, and writes itself to the log when raised. Context
holds identifiers only (user ids, platform slugs, field names); credential
values never go into an exception.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

_correlation = threading.local()

GENERIC_USER_MESSAGE = "Something went wrong on our side. Please contact support."
RECONNECT_MESSAGE = "Your connection has expired. Please reconnect this platform."

# Context keys that are bookkeeping rather than caller-supplied detail
_INTERNAL_KEYS = ("cause", "error_id", "correlation_id")


class ErrorCode(str, Enum):
    """Wire codes, grouped by thousand."""

    # 1xxx: the vault itself failed
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONFIGURATION_ERROR = "1003"
    DECRYPTION_FAILED = "1005"

    # 2xxx: the request was malformed
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"
    TYPE_MISMATCH = "2003"
    CONSTRAINT_VIOLATION = "2004"
    INVALID_SIGNATURE = "2005"

    # 3xxx: lookups and uniqueness
    NOT_FOUND = "3000"
    DUPLICATE = "3001"

    # 4xxx: state does not allow the operation
    BUSINESS_RULE_VIOLATION = "4000"
    REAUTHORIZATION_REQUIRED = "4005"

    # 5xxx: upstream providers
    EXTERNAL_API_ERROR = "5002"


def _describe_cause(cause: Exception) -> Dict[str, Any]:
    return {
        "type": type(cause).__name__,
        "message": str(cause),
        "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
    }


class BaseError(Exception):
    """
    Root of every vault error.

    ``status_code`` decides both the log level (ERROR for 5xx, WARNING for
    4xx) and whether ``user_message`` may show the real message.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.error_id = str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc).isoformat()

        self.context = dict(context)
        self.context["error_id"] = self.error_id
        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id
        if cause is not None:
            self.context["cause"] = _describe_cause(cause)

        self._emit()

    @property
    def public_context(self) -> Dict[str, Any]:
        """Caller-supplied context without ids or cause details."""
        return {k: v for k, v in self.context.items() if k not in _INTERNAL_KEYS}

    def _emit(self) -> None:
        # Imported here: the logger module imports this one
        from .utils.logger import get_logger

        extra = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "timestamp": self.timestamp,
            "context": self.public_context,
        }
        if "correlation_id" in self.context:
            extra["correlation_id"] = self.context["correlation_id"]

        log = get_logger()
        if self.status_code >= 500:
            log.error(f"{self.error_code.value} {self.message}", extra=extra, exc_info=self.cause)
        elif self.status_code >= 400:
            log.warning(f"{self.error_code.value} {self.message}", extra=extra)
        else:
            log.info(f"{self.error_code.value} {self.message}", extra=extra)

    @property
    def user_message(self) -> str:
        """Text an end user may see; server-side failures stay generic."""
        return GENERIC_USER_MESSAGE if self.status_code >= 500 else self.message

    def to_dict(self, include_cause: bool = False, include_traceback: bool = False) -> Dict[str, Any]:
        """Serialise for an API response body under an ``error`` key."""
        body: Dict[str, Any] = {
            "id": self.error_id,
            "code": self.error_code.value,
            "message": self.user_message,
            "timestamp": self.timestamp,
            "context": self.public_context,
        }
        if "correlation_id" in self.context:
            body["correlation_id"] = self.context["correlation_id"]

        cause = self.context.get("cause")
        if include_cause and cause:
            body["cause"] = {"type": cause["type"], "message": cause["message"]}
            if include_traceback:
                body["cause"]["traceback"] = cause["traceback"]

        return {"error": body}

    @property
    def error_chain(self) -> List[Exception]:
        """This error followed by each nested ``cause``."""
        chain: List[Exception] = []
        link: Optional[Exception] = self
        while link is not None:
            chain.append(link)
            link = getattr(link, "cause", None)
        return chain


class RepositoryError(BaseError):
    """Persistence failure, or a lookup/uniqueness problem raised by a repository."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, status_code, cause, **context)


class ServiceError(BaseError):
    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, 500, cause, **context)


class ValidationError(BaseError):
    """Bad input. Always a 400, optionally naming the offending field."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class ExternalServiceError(BaseError):
    """An upstream provider answered badly or not at all (502)."""

    def __init__(
        self,
        message: str,
        service_name: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_API_ERROR,
        cause: Optional[Exception] = None,
        **context,
    ):
        context["service_name"] = service_name
        super().__init__(message, error_code, 502, cause, **context)


def _keyed(prefix: str, identifiers: Dict[str, Any]) -> str:
    if not identifiers:
        return prefix
    return prefix + ": " + ", ".join(f"{k}={v}" for k, v in identifiers.items())


def not_found(resource_type: str, cause: Optional[Exception] = None, **identifiers) -> RepositoryError:
    """
    Build a 404 for a missing row.

    >>> not_found("Agent", agent_id="a1").message
    'Agent not found: agent_id=a1'
    """
    return RepositoryError(
        _keyed(f"{resource_type} not found", identifiers),
        error_code=ErrorCode.NOT_FOUND,
        status_code=404,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def duplicate(resource_type: str, cause: Optional[Exception] = None, **identifiers) -> RepositoryError:
    """Build a 409 for a row that already exists."""
    return RepositoryError(
        _keyed(f"Duplicate {resource_type}", identifiers),
        error_code=ErrorCode.DUPLICATE,
        status_code=409,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def missing_field(field: str, label: Optional[str] = None) -> ValidationError:
    """A required field was absent or blank. Names the field, never its value."""
    return ValidationError(
        f"Missing required field: {label or field}",
        field=field,
        error_code=ErrorCode.MISSING_REQUIRED,
    )


def set_correlation_id(correlation_id: str) -> None:
    _correlation.value = correlation_id


def get_correlation_id() -> Optional[str]:
    return getattr(_correlation, "value", None)


def clear_correlation_id() -> None:
    _correlation.__dict__.pop("value", None)


# Vault errors


class EncryptionConfigurationError(ServiceError):
    """The master key is missing or malformed. Retrying will not help."""

    def __init__(self, message: str = "Credential encryption key is not configured", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="load_encryption_key",
            **kwargs,
        )


class CredentialDecryptionError(BaseError):
    """
    A stored blob failed authentication or did not parse.

    This means corruption, tampering or a rotated key. Callers must surface it
    rather than treat the credential as absent.
    """

    def __init__(self, message: str = "Failed to decrypt credential data", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.DECRYPTION_FAILED, status_code=500, **kwargs
        )


class RefreshTokenUnavailableError(BaseError):
    def __init__(self, message: str = "No valid refresh token found", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.REAUTHORIZATION_REQUIRED,
            status_code=401,
            **kwargs,
        )

    @property
    def user_message(self) -> str:
        return RECONNECT_MESSAGE


class TokenRefreshError(ExternalServiceError):
    """The provider's token endpoint refused the refresh grant."""

    def __init__(
        self,
        message: str = "Token refresh failed",
        service_name: str = "oauth_token_endpoint",
        **kwargs,
    ):
        super().__init__(message=message, service_name=service_name, **kwargs)

    @property
    def user_message(self) -> str:
        return RECONNECT_MESSAGE


class AgentNotFoundError(BaseError):
    """No active agent with that id."""

    def __init__(self, message: str = "Agent not found", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.NOT_FOUND, status_code=404, **kwargs)


class PlatformNotFoundError(ValidationError):
    def __init__(self, platform_slug: str, **kwargs):
        super().__init__(
            f"Unknown platform: {platform_slug}",
            field="platform_slug",
            error_code=ErrorCode.NOT_FOUND,
            platform_slug=platform_slug,
            **kwargs,
        )


class WebhookSignatureError(BaseError):
    """The payment webhook signature does not match the raw body."""

    def __init__(self, message: str = "Invalid webhook signature", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.INVALID_SIGNATURE, status_code=400, **kwargs
        )
