"""
Credential vault service.

Encrypts, stores, retrieves, refreshes and revokes per-user, per-agent,
per-platform secrets. Two shapes are stored in the same table:

- api_key, basic_auth and bearer_token credentials: one encrypted JSON map
  of field name to value
- oauth2 credentials: access and refresh tokens encrypted independently,
  with a plaintext expiry and scope

Decrypted values exist only in the returned schema objects. They are never
logged and never written back in plaintext.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import get_config
from ..constants import PLATFORM_SLUG_PATTERN, Limits
from ..db.db_base import as_utc, utc_now
from ..db.db_credential_models import UserAgentCredential
from ..enums import CredentialType
from ..exceptions import (
    CredentialDecryptionError,
    ErrorCode,
    RefreshTokenUnavailableError,
    ValidationError,
)
from ..repositories.credential_repository import CredentialRepository
from ..schemas.credential_schemas import (
    CredentialSummary,
    DecryptedCredential,
    OAuthCredential,
    OAuthTokens,
    SimpleCredential,
    TokenEndpointConfig,
)
from ..utils.encryption_utils import EncryptedBlob, decrypt, encrypt
from ..utils.json_utils import canonical_dumps, loads
from ..utils.logger import get_logger
from ..utils.oauth_utils import request_token_refresh

_OAUTH_COLUMNS_CLEARED = {
    "access_token_encrypted": None,
    "refresh_token_encrypted": None,
    "token_expires_at": None,
    "token_scope": None,
    "last_refreshed_at": None,
}

_SIMPLE_COLUMNS_CLEARED = {
    "encrypted_data": None,
    "encryption_iv": None,
    "encryption_tag": None,
}


def validate_platform_slug(platform_slug: str) -> None:
    """
    Reject slugs that are not lowercase letters, digits and underscores.

    Raises:
        ValidationError: INVALID_FORMAT on field platform_slug
    """
    if (
        not platform_slug
        or len(platform_slug) > Limits.PLATFORM_SLUG_MAX_LENGTH
        or not PLATFORM_SLUG_PATTERN.fullmatch(platform_slug)
    ):
        raise ValidationError(
            "Platform slug must be 1-50 lowercase letters, numbers or underscores",
            field="platform_slug",
            error_code=ErrorCode.INVALID_FORMAT,
        )


class CredentialVault:
    """
    Encrypted credential storage keyed by (user_id, agent_id, platform_slug).

    Calls are stateless: every operation reads or writes the database
    through the repository and holds nothing between calls.
    """

    def __init__(
        self,
        session: Session,
        credential_repository: Optional[CredentialRepository] = None,
    ):
        """Initialize with SQLAlchemy session and optional repository."""
        self.session = session
        self.credential_repository = credential_repository or CredentialRepository(session)
        self.logger = get_logger()

        app_config = get_config()
        self.refresh_buffer_seconds = app_config.oauth.refresh_buffer_seconds
        self.key_version = app_config.security.encryption_key_version

    # ==================== HELPERS ====================

    @staticmethod
    def _account_columns(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        metadata = metadata or {}
        return {
            "platform_user_id": metadata.get("platform_user_id"),
            "platform_user_email": metadata.get("platform_user_email"),
        }

    def _decrypt_simple(self, record: UserAgentCredential) -> SimpleCredential:
        if not (record.encrypted_data and record.encryption_iv and record.encryption_tag):
            raise CredentialDecryptionError(
                "Stored credential payload is incomplete", platform_slug=record.platform_slug
            )

        plaintext = decrypt(
            EncryptedBlob(
                ciphertext=record.encrypted_data,
                iv=record.encryption_iv,
                tag=record.encryption_tag,
            )
        )

        try:
            fields = loads(plaintext)
        except ValueError:
            fields = None
        if not isinstance(fields, dict):
            raise CredentialDecryptionError(
                "Decrypted credential is not a field map", platform_slug=record.platform_slug
            )

        return SimpleCredential(
            platform_slug=record.platform_slug,
            credential_type=record.credential_type,
            fields=fields,
            metadata=record.credential_metadata or {},
        )

    def _decrypt_oauth(self, record: UserAgentCredential) -> OAuthCredential:
        access_token = decrypt(EncryptedBlob.from_json(record.access_token_encrypted))
        refresh_token = None
        if record.refresh_token_encrypted:
            refresh_token = decrypt(EncryptedBlob.from_json(record.refresh_token_encrypted))

        return OAuthCredential(
            platform_slug=record.platform_slug,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=as_utc(record.token_expires_at),
            scope=record.token_scope,
            metadata=record.credential_metadata or {},
        )

    def _decrypt_record(self, record: UserAgentCredential) -> DecryptedCredential:
        try:
            if record.credential_type == CredentialType.OAUTH2.value:
                return self._decrypt_oauth(record)
            return self._decrypt_simple(record)
        except CredentialDecryptionError as e:
            # Logged once when raised; the triple rides along on the error
            e.context.update(
                user_id=record.user_id,
                agent_id=record.agent_id,
                platform_slug=record.platform_slug,
                credential_type=record.credential_type,
                key_version=record.encryption_key_version,
            )
            raise

    # ==================== SIMPLE CREDENTIALS ====================

    def store_simple_credentials(
        self,
        user_id: str,
        agent_id: str,
        platform_slug: str,
        fields: Dict[str, str],
        credential_type: CredentialType = CredentialType.API_KEY,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Encrypt and store an api_key, basic_auth or bearer_token credential.

        Field names are not checked against the platform definition here;
        the save handler does that before calling.

        Raises:
            ValidationError: For oauth2 type or a malformed slug
            EncryptionConfigurationError: If the master key is missing or malformed
            RepositoryError: If the upsert fails
        """
        credential_type = CredentialType(credential_type)
        if credential_type == CredentialType.OAUTH2:
            raise ValidationError(
                "OAuth2 credentials must be stored with store_oauth_credentials",
                field="credential_type",
                error_code=ErrorCode.INVALID_FORMAT,
            )
        validate_platform_slug(platform_slug)
        for name, value in fields.items():
            if not isinstance(value, str):
                raise ValidationError(
                    f"Credential field {name} must be a string",
                    field=name,
                    error_code=ErrorCode.TYPE_MISMATCH,
                )

        blob = encrypt(canonical_dumps(fields))

        self.credential_repository.upsert(
            {
                "user_id": user_id,
                "agent_id": agent_id,
                "platform_slug": platform_slug,
                "credential_type": credential_type,
                "encrypted_data": blob.ciphertext,
                "encryption_iv": blob.iv,
                "encryption_tag": blob.tag,
                "encryption_key_version": self.key_version,
                "credential_metadata": metadata or {},
                **self._account_columns(metadata),
                **_OAUTH_COLUMNS_CLEARED,
            }
        )

        self.logger.info(
            "Stored credentials",
            extra={
                "user_id": user_id,
                "agent_id": agent_id,
                "platform_slug": platform_slug,
                "credential_type": credential_type.value,
                "field_names": sorted(fields),
            },
        )

    def retrieve_simple_credentials(
        self, user_id: str, agent_id: str, platform_slug: str
    ) -> Optional[SimpleCredential]:
        """
        Decrypt a non-OAuth credential.

        Returns:
            The credential, or None when nothing active is stored or the
            stored credential is oauth2 (use retrieve_oauth_credentials)

        Raises:
            CredentialDecryptionError: If the stored payload fails authentication
        """
        record = self.credential_repository.get(user_id, agent_id, platform_slug)
        if record is None:
            return None
        if record.credential_type == CredentialType.OAUTH2.value:
            self.logger.debug(
                "Credential is oauth2, not returned by the simple path",
                extra={"platform_slug": platform_slug},
            )
            return None

        return self._decrypt_record(record)  # type: ignore[return-value]

    def retrieve_credential(
        self, user_id: str, agent_id: str, platform_slug: str
    ) -> Optional[DecryptedCredential]:
        """Decrypt whichever credential shape is stored for the triple."""
        record = self.credential_repository.get(user_id, agent_id, platform_slug)
        if record is None:
            return None
        return self._decrypt_record(record)

    def retrieve_all_credentials(self, user_id: str, agent_id: str) -> Dict[str, DecryptedCredential]:
        """
        Decrypt every active credential of a user for one agent.

        A record that fails to decrypt fails the whole call.
        """
        return {
            record.platform_slug: self._decrypt_record(record)
            for record in self.credential_repository.get_all(user_id, agent_id)
        }

    # ==================== OAUTH2 ====================

    def store_oauth_credentials(
        self,
        user_id: str,
        agent_id: str,
        platform_slug: str,
        tokens: OAuthTokens,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Encrypt and store an OAuth2 token set.

        The access and refresh tokens each get their own IV and tag.
        token_expires_at is now + expires_in, or unset when the provider
        gave no lifetime.
        """
        validate_platform_slug(platform_slug)
        now = now or utc_now()

        access_blob = encrypt(tokens.access_token)
        refresh_blob = encrypt(tokens.refresh_token) if tokens.refresh_token else None
        expires_at = (
            now + timedelta(seconds=tokens.expires_in) if tokens.expires_in is not None else None
        )

        self.credential_repository.upsert(
            {
                "user_id": user_id,
                "agent_id": agent_id,
                "platform_slug": platform_slug,
                "credential_type": CredentialType.OAUTH2,
                "access_token_encrypted": access_blob.to_json(),
                "refresh_token_encrypted": refresh_blob.to_json() if refresh_blob else None,
                "token_expires_at": expires_at,
                "token_scope": tokens.scope,
                "last_refreshed_at": now,
                "encryption_key_version": self.key_version,
                "credential_metadata": metadata or {},
                **self._account_columns(metadata),
                **_SIMPLE_COLUMNS_CLEARED,
            }
        )

        self.logger.info(
            "Stored OAuth credentials",
            extra={
                "user_id": user_id,
                "agent_id": agent_id,
                "platform_slug": platform_slug,
                "has_refresh_token": refresh_blob is not None,
                "expires_at": expires_at.isoformat() if expires_at else None,
            },
        )

    def retrieve_oauth_credentials(
        self, user_id: str, agent_id: str, platform_slug: str
    ) -> Optional[OAuthCredential]:
        """Decrypt an OAuth2 credential; None when none is active for the triple."""
        record = self.credential_repository.get(user_id, agent_id, platform_slug)
        if record is None or record.credential_type != CredentialType.OAUTH2.value:
            return None
        return self._decrypt_record(record)  # type: ignore[return-value]

    def needs_refresh(
        self, credential: Optional[DecryptedCredential], now: Optional[datetime] = None
    ) -> bool:
        """
        True when an oauth2 credential expires within the refresh buffer.

        Credentials without an expiry are never reported as needing refresh.
        """
        if credential is None or credential.credential_type != CredentialType.OAUTH2:
            return False
        expires_at = getattr(credential, "expires_at", None)
        if expires_at is None:
            return False

        now = now or utc_now()
        return as_utc(expires_at) < now + timedelta(seconds=self.refresh_buffer_seconds)

    def refresh_oauth_token(
        self,
        user_id: str,
        agent_id: str,
        platform_slug: str,
        endpoint: TokenEndpointConfig,
    ) -> OAuthTokens:
        """
        Exchange the stored refresh token for a new token set and store it.

        Metadata is preserved. When the provider does not return a new
        refresh token (or scope), the stored one is kept.

        Raises:
            RefreshTokenUnavailableError: No oauth2 credential or no refresh token
            TokenRefreshError: The token endpoint failed; not retried
        """
        # TODO: serialize refreshes per triple with pg_advisory_xact_lock once a
        # connected provider is confirmed to rotate refresh tokens on use.
        credential = self.retrieve_oauth_credentials(user_id, agent_id, platform_slug)
        if credential is None or not credential.refresh_token:
            raise RefreshTokenUnavailableError(
                user_id=user_id, agent_id=agent_id, platform_slug=platform_slug
            )

        tokens = request_token_refresh(endpoint, credential.refresh_token, platform_slug)

        carried = {}
        if tokens.refresh_token is None:
            carried["refresh_token"] = credential.refresh_token
        if tokens.scope is None and credential.scope:
            carried["scope"] = credential.scope
        if carried:
            tokens = tokens.model_copy(update=carried)

        self.store_oauth_credentials(
            user_id, agent_id, platform_slug, tokens, metadata=credential.metadata
        )
        return tokens

    def get_valid_oauth_credentials(
        self,
        user_id: str,
        agent_id: str,
        platform_slug: str,
        endpoint: TokenEndpointConfig,
    ) -> Optional[OAuthCredential]:
        """Retrieve an OAuth2 credential, refreshing it first when it is about to expire."""
        credential = self.retrieve_oauth_credentials(user_id, agent_id, platform_slug)
        if not self.needs_refresh(credential):
            return credential

        self.logger.info(
            "OAuth token expiring, refreshing",
            extra={"user_id": user_id, "agent_id": agent_id, "platform_slug": platform_slug},
        )
        self.refresh_oauth_token(user_id, agent_id, platform_slug, endpoint)
        return self.retrieve_oauth_credentials(user_id, agent_id, platform_slug)

    # ==================== LIFECYCLE ====================

    def disconnect_credentials(self, user_id: str, agent_id: str, platform_slug: str) -> bool:
        """Deactivate the credential; the encrypted row stays in place."""
        disconnected = self.credential_repository.deactivate(user_id, agent_id, platform_slug)
        self.logger.info(
            "Disconnected credentials",
            extra={
                "user_id": user_id,
                "agent_id": agent_id,
                "platform_slug": platform_slug,
                "found": disconnected,
            },
        )
        return disconnected

    def delete_credentials(self, user_id: str, agent_id: str, platform_slug: str) -> bool:
        """Permanently remove the credential row. Irreversible."""
        deleted = self.credential_repository.delete(user_id, agent_id, platform_slug)
        self.logger.warning(
            "Deleted credentials",
            extra={
                "user_id": user_id,
                "agent_id": agent_id,
                "platform_slug": platform_slug,
                "found": deleted,
            },
        )
        return deleted

    def list_credentials(self, user_id: str, agent_id: str) -> List[CredentialSummary]:
        """Status of every stored credential without decrypting anything."""
        return self.credential_repository.list_summaries(user_id, agent_id)
