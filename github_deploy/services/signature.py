"""Signature Verifier — GitHub X-Hub-Signature-256 validation."""

from __future__ import annotations

import hashlib
import hmac


def expected_signature(secret: str, body: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(signature_header: str | None, body: bytes, secret: str | None) -> bool:
    """Validate the raw request body against the shared webhook secret.

    Verification is disabled when no secret is configured. Comparison is
    constant-time; a header of the wrong length simply does not match.
    """
    if not secret:
        return True
    if not signature_header:
        return False
    expected = expected_signature(secret, body)
    return hmac.compare_digest(expected.encode(), signature_header.encode("utf-8", "replace"))
