"""Verification of signed gateway callbacks."""

from __future__ import annotations

import hashlib
import hmac


def sign_payload(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """True when ``signature`` is the hex HMAC-SHA256 of ``body``."""
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(body, secret), signature.strip().lower())
