"""
Encryption utilities for credential storage.

AES-256-GCM with a static master key loaded from configuration. Each call to
encrypt() draws a fresh random 16-byte IV; the 16-byte authentication tag is
stored apart from the ciphertext. All three parts are base64 text so they fit
in plain text or JSON columns.
"""

import base64
import binascii
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from ..config import get_config
from ..constants import Encryption
from ..exceptions import CredentialDecryptionError, EncryptionConfigurationError
from .json_utils import dumps, loads


class EncryptedBlob(BaseModel):
    """One encrypted value: base64 ciphertext, IV and authentication tag."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ciphertext: str
    iv: str
    tag: str

    def to_json(self) -> str:
        """Serialize for a JSON-bearing text column."""
        return dumps(self.model_dump())

    @classmethod
    def from_json(cls, data: Optional[str]) -> "EncryptedBlob":
        """
        Parse a blob stored by to_json().

        Raises:
            CredentialDecryptionError: If the stored text is not a valid blob
        """
        if not data:
            raise CredentialDecryptionError("Stored credential blob is empty")
        try:
            return cls.model_validate(loads(data))
        except (ValueError, TypeError, PydanticValidationError) as e:
            # The stored text is not echoed back; only the failure type is recorded
            raise CredentialDecryptionError(
                "Stored credential blob is malformed", error_type=type(e).__name__
            ) from None


def load_encryption_key(raw_key: Optional[str] = None) -> bytes:
    """
    Load and validate the master key.

    Args:
        raw_key: Hex key; defaults to the configured CREDENTIAL_ENCRYPTION_KEY

    Returns:
        32-byte key

    Raises:
        EncryptionConfigurationError: If the key is missing or not 64 hex characters
    """
    if raw_key is None:
        raw_key = get_config().security.encryption_key

    if not raw_key:
        raise EncryptionConfigurationError(
            "CREDENTIAL_ENCRYPTION_KEY environment variable not set"
        )

    raw_key = raw_key.strip()
    if len(raw_key) != Encryption.KEY_HEX_LENGTH:
        raise EncryptionConfigurationError(
            f"CREDENTIAL_ENCRYPTION_KEY must be {Encryption.KEY_HEX_LENGTH} hex characters "
            f"({Encryption.KEY_BYTES} bytes)",
            key_length=len(raw_key),
        )

    try:
        return bytes.fromhex(raw_key)
    except ValueError:
        raise EncryptionConfigurationError(
            "CREDENTIAL_ENCRYPTION_KEY must contain only hex characters"
        ) from None


def encrypt(plaintext: str, key: Optional[bytes] = None) -> EncryptedBlob:
    """
    Encrypt a string with AES-256-GCM.

    Args:
        plaintext: Value to encrypt
        key: Optional 32-byte key; defaults to the configured master key

    Returns:
        EncryptedBlob with base64 ciphertext, iv and tag
    """
    key = key if key is not None else load_encryption_key()
    iv = os.urandom(Encryption.IV_BYTES)

    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[: -Encryption.TAG_BYTES], sealed[-Encryption.TAG_BYTES :]

    return EncryptedBlob(
        ciphertext=base64.b64encode(ciphertext).decode("ascii"),
        iv=base64.b64encode(iv).decode("ascii"),
        tag=base64.b64encode(tag).decode("ascii"),
    )


def _b64decode(value: str, part: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError):
        raise CredentialDecryptionError(
            "Stored credential blob has invalid encoding", blob_part=part
        ) from None


def decrypt(blob: EncryptedBlob, key: Optional[bytes] = None) -> str:
    """
    Decrypt and authenticate an EncryptedBlob.

    Args:
        blob: Value produced by encrypt()
        key: Optional 32-byte key; defaults to the configured master key

    Returns:
        Plaintext string

    Raises:
        CredentialDecryptionError: If the ciphertext, IV or tag was altered,
            the components are malformed, or the key does not match
    """
    key = key if key is not None else load_encryption_key()

    ciphertext = _b64decode(blob.ciphertext, "ciphertext")
    iv = _b64decode(blob.iv, "iv")
    tag = _b64decode(blob.tag, "tag")

    if len(iv) != Encryption.IV_BYTES or len(tag) != Encryption.TAG_BYTES:
        raise CredentialDecryptionError(
            "Stored credential blob has invalid iv or tag length",
            iv_length=len(iv),
            tag_length=len(tag),
        )

    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag:
        raise CredentialDecryptionError(
            "Credential authentication failed: data was tampered with or the key does not match"
        ) from None

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise CredentialDecryptionError("Decrypted credential is not valid UTF-8") from None
