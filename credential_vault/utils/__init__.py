"""
Utility modules for the credential vault.

This package contains encryption, signing, JSON and logging helpers used
across the package.
"""

from .encryption_utils import EncryptedBlob, decrypt, encrypt, load_encryption_key
from .json_utils import canonical_dumps, dumps, loads
from .logger import configure_logging, get_logger
from .signature_utils import compute_signature, signatures_match

__all__ = [
    # Encryption
    "EncryptedBlob",
    "decrypt",
    "encrypt",
    "load_encryption_key",
    # JSON
    "canonical_dumps",
    "dumps",
    "loads",
    # Logging
    "configure_logging",
    "get_logger",
    # Signatures
    "compute_signature",
    "signatures_match",
]
