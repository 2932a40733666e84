"""
HMAC-SHA256 signatures for payment gateway webhooks and checkout callbacks.
"""

import hashlib
import hmac
from typing import Optional, Union

from ..constants import Limits


def compute_signature(raw_body: Union[bytes, str], secret: str) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def signatures_match(raw_body: Union[bytes, str], signature: Optional[str], secret: str) -> bool:
    """Constant-time comparison of the received signature with the expected one."""
    if not signature:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("utf-8"))


def signature_prefix(signature: Optional[str]) -> str:
    """Loggable prefix of a signature."""
    return (signature or "")[: Limits.SIGNATURE_LOG_PREFIX_CHARS]


def checkout_payload(order_id: str, payment_id: str) -> str:
    """The string a checkout signature is computed over."""
    return f"{order_id}|{payment_id}"
