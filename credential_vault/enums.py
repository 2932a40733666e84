"""
Enums used across the credential_vault package.

This module contains enum definitions that are used by multiple modules
to avoid circular import issues.
"""

import enum


class CredentialType(str, enum.Enum):
    """Shape of a stored credential."""

    API_KEY = "api_key"
    BASIC_AUTH = "basic_auth"
    BEARER_TOKEN = "bearer_token"
    OAUTH2 = "oauth2"


class PurchaseStatus(str, enum.Enum):
    """Status of a credit purchase recorded from the payment gateway."""

    COMPLETED = "completed"
