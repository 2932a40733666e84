"""
Pydantic schemas for vault credentials.

Decrypted values only ever live in these models, in memory, for the duration
of one call. Secret-bearing fields are excluded from repr so a stray log of
a model never prints them.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..constants import Limits
from ..enums import CredentialType
from ..exceptions import ErrorCode, ValidationError
from .platform_schemas import PlatformDefinitionRead


class OAuthTokens(BaseModel):
    """Token set returned by a provider's token endpoint."""

    # Providers add id_token, refresh_token_expires_in and similar extras
    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1, repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)
    expires_in: Optional[int] = Field(
        None, ge=0, le=Limits.TOKEN_LIFETIME_MAX_SECONDS, description="Lifetime in seconds"
    )
    scope: Optional[str] = None
    token_type: Optional[str] = None


class SimpleCredential(BaseModel):
    """Decrypted api_key, basic_auth or bearer_token credential."""

    platform_slug: str
    credential_type: CredentialType
    fields: Dict[str, str] = Field(default_factory=dict, repr=False)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class OAuthCredential(BaseModel):
    """Decrypted OAuth2 credential."""

    platform_slug: str
    credential_type: CredentialType = CredentialType.OAUTH2
    access_token: str = Field(..., repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


DecryptedCredential = Union[SimpleCredential, OAuthCredential]


class CredentialSummary(BaseModel):
    """What the status view may see of a stored credential: never secrets."""

    platform_slug: str
    credential_type: CredentialType
    is_active: bool
    expires_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RequirementCheckResult(BaseModel):
    has_all: bool
    missing: List[str] = Field(default_factory=list)
    required: List[str] = Field(default_factory=list)


class CredentialSaveRequest(BaseModel):
    """Incoming credential save or disconnect request."""

    agent_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("agent_id", "workflow_id")
    )
    platform_slug: str = Field(..., min_length=1)
    credentials: Dict[str, str] = Field(default_factory=dict, repr=False)
    metadata: Optional[Dict[str, Any]] = None
    disconnect: bool = False


class TokenEndpointConfig(BaseModel):
    """Where and how to refresh a platform's OAuth tokens."""

    token_url: str = Field(..., min_length=1)
    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1, repr=False)
    timeout: Optional[int] = Field(None, gt=0, description="Seconds; defaults to config")

    @classmethod
    def from_platform(
        cls, definition: PlatformDefinitionRead, client_id: str, client_secret: str
    ) -> "TokenEndpointConfig":
        """
        Build the endpoint from a platform definition's oauth_config.

        Raises:
            ValidationError: If the platform has no token endpoint configured
        """
        if definition.oauth_config is None:
            raise ValidationError(
                f"Platform {definition.platform_slug} has no OAuth configuration",
                field="oauth_config",
                error_code=ErrorCode.MISSING_REQUIRED,
                platform_slug=definition.platform_slug,
            )
        return cls(
            token_url=definition.oauth_config.token_url,
            client_id=client_id,
            client_secret=client_secret,
        )
