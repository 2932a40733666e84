"""
Platform definition model: which fields a platform's credential has and how
to set it up.
"""

from sqlalchemy import Boolean, Column, String, Text

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class PlatformDefinition(Base, UUIDMixin, TimestampMixin):
    """Credential shape and setup text for one platform slug."""

    __tablename__ = "credential_platform_definitions"

    platform_slug = Column(String(50), nullable=False, unique=True)
    platform_name = Column(String(100), nullable=False)
    credential_type = Column(String(20), nullable=False)

    # [{"name", "label", "type", "required", "placeholder", "help_text"}]
    field_schema = Column(JSON, nullable=False, default=list)
    # {"auth_url", "token_url", "scope", "provider"} for oauth2 platforms
    oauth_config = Column(JSON, nullable=True)

    icon_url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    documentation_url = Column(Text, nullable=True)
    setup_instructions = Column(Text, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
