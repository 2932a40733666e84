"""Pydantic schemas for the credential vault."""

from .credential_schemas import (
    CredentialSaveRequest,
    CredentialSummary,
    DecryptedCredential,
    OAuthCredential,
    OAuthTokens,
    RequirementCheckResult,
    SimpleCredential,
    TokenEndpointConfig,
)
from .payment_schemas import CapturedPayment, PaymentNotes, WebhookResult
from .platform_schemas import (
    PlatformDefinitionCreate,
    PlatformDefinitionRead,
    PlatformField,
    PlatformOAuthConfig,
)

__all__ = [
    "CapturedPayment",
    "CredentialSaveRequest",
    "CredentialSummary",
    "DecryptedCredential",
    "OAuthCredential",
    "OAuthTokens",
    "PaymentNotes",
    "PlatformDefinitionCreate",
    "PlatformDefinitionRead",
    "PlatformField",
    "PlatformOAuthConfig",
    "RequirementCheckResult",
    "SimpleCredential",
    "TokenEndpointConfig",
    "WebhookResult",
]
