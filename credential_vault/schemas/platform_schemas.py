"""
Pydantic schemas for platform definitions.

A platform definition tells the save handler which fields a credential for
that platform has, and tells the OAuth path where its token endpoint lives.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import PLATFORM_SLUG_PATTERN, Limits
from ..enums import CredentialType


class PlatformField(BaseModel):
    """One input field of a platform credential form."""

    name: str = Field(..., min_length=1, description="Key inside the stored field map")
    label: str = Field(..., min_length=1, description="Human-readable label")
    type: str = Field(default="text", description="Input type: text, password, url, email")
    required: bool = Field(default=True)
    placeholder: Optional[str] = None
    help_text: Optional[str] = None


class PlatformOAuthConfig(BaseModel):
    """OAuth endpoints of a platform."""

    model_config = ConfigDict(extra="allow")

    token_url: str = Field(..., min_length=1, description="Token endpoint used for refresh")
    auth_url: Optional[str] = Field(None, description="Authorization endpoint")
    scope: Optional[str] = None
    provider: Optional[str] = None


class PlatformDefinitionCreate(BaseModel):
    """Schema for registering a platform definition."""

    platform_slug: str = Field(..., min_length=1, max_length=Limits.PLATFORM_SLUG_MAX_LENGTH)
    platform_name: str = Field(..., min_length=1, max_length=100)
    credential_type: CredentialType
    field_schema: List[PlatformField] = Field(default_factory=list)
    oauth_config: Optional[PlatformOAuthConfig] = None
    description: Optional[str] = None
    documentation_url: Optional[str] = None
    setup_instructions: Optional[str] = None
    icon_url: Optional[str] = None

    @field_validator("platform_slug")
    @classmethod
    def validate_platform_slug(cls, v):
        """Slugs are lowercase letters, digits and underscores."""
        if not PLATFORM_SLUG_PATTERN.fullmatch(v):
            raise ValueError("Platform slug can only contain lowercase letters, numbers and underscore")
        return v


class PlatformDefinitionRead(BaseModel):
    """Schema for reading platform definitions."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    platform_slug: str
    platform_name: str
    credential_type: CredentialType
    field_schema: List[PlatformField] = Field(default_factory=list)
    oauth_config: Optional[PlatformOAuthConfig] = None
    description: Optional[str] = None
    documentation_url: Optional[str] = None
    setup_instructions: Optional[str] = None
    icon_url: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def required_fields(self) -> List[PlatformField]:
        return [field for field in self.field_schema if field.required]
