"""
Credential storage model - just the data structure, no business logic.

Encryption and decryption happen in the vault service; this table only ever
sees base64 ciphertext, IVs and tags.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint, text

from ..constants import Encryption
from ..enums import CredentialType
from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class UserAgentCredential(Base, UUIDMixin, TimestampMixin):
    """One stored secret per (user, agent, platform)."""

    __tablename__ = "user_agent_credentials"

    # Identity
    user_id = Column(String(36), nullable=False, index=True)
    agent_id = Column(String(36), nullable=False)
    platform_slug = Column(String(50), nullable=False)
    credential_type = Column(String(20), nullable=False, default=CredentialType.API_KEY.value)

    # Non-OAuth payload: one encrypted JSON object of field name -> value
    encrypted_data = Column(Text, nullable=True)
    encryption_iv = Column(String(64), nullable=True)
    encryption_tag = Column(String(64), nullable=True)
    encryption_key_version = Column(Integer, nullable=False, default=Encryption.KEY_VERSION)

    # OAuth payload: each token is its own JSON {ciphertext, iv, tag}
    access_token_encrypted = Column(Text, nullable=True)
    refresh_token_encrypted = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    token_scope = Column(Text, nullable=True)

    # Platform account info (plaintext, never secrets)
    platform_user_id = Column(Text, nullable=True)
    platform_user_email = Column(Text, nullable=True)

    # Status
    is_active = Column(Boolean, nullable=False, default=True)
    last_refreshed_at = Column(DateTime(timezone=True), nullable=True)

    credential_metadata = Column("metadata", JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "agent_id", "platform_slug", name="uq_user_agent_credentials_triple"
        ),
        Index("ix_user_agent_credentials_platform", "platform_slug", "user_id"),
        Index(
            "ix_user_agent_credentials_token_expires_at",
            "token_expires_at",
            postgresql_where=text("credential_type = 'oauth2' AND is_active"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"UserAgentCredential(user_id='{self.user_id}', agent_id='{self.agent_id}', "
            f"platform_slug='{self.platform_slug}', credential_type='{self.credential_type}', "
            f"is_active={self.is_active})"
        )
