"""
Webhook signature — HMAC-SHA256 over the exact raw body, hex encoded.
"""

import hashlib
import hmac


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Constant-time comparison. Missing signature or secret never verifies."""
    if not signature or not secret:
        return False
    expected = sign(secret, body)
    return hmac.compare_digest(
        expected.encode(), signature.strip().lower().encode("utf-8", "replace")
    )


__all__ = ("sign", "verify_signature")
