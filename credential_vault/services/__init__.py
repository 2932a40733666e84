"""Service layer for business logic."""

from .credential_save_service import CredentialSaveService
from .credential_service import CredentialVault
from .payment_service import PaymentWebhookService
from .platform_service import PlatformRegistry
from .requirement_service import RequirementChecker

__all__ = [
    "CredentialSaveService",
    "CredentialVault",
    "PaymentWebhookService",
    "PlatformRegistry",
    "RequirementChecker",
]
