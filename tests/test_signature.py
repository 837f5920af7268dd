"""Tests for webhook signature verification."""

from __future__ import annotations

import hashlib
import hmac

from github_deploy.services.signature import expected_signature, verify_signature

BODY = b'{"ref":"refs/heads/main"}'


def _sign(secret: str, body: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestVerifySignature:
    def test_valid_signature(self):
        assert verify_signature(_sign("supersecret", BODY), BODY, "supersecret") is True

    def test_expected_signature_format(self):
        assert expected_signature("supersecret", BODY) == _sign("supersecret", BODY)

    def test_wrong_secret(self):
        assert verify_signature(_sign("other", BODY), BODY, "supersecret") is False

    def test_tampered_body(self):
        assert verify_signature(_sign("supersecret", BODY), BODY + b" ", "supersecret") is False

    def test_missing_header_with_secret(self):
        assert verify_signature(None, BODY, "supersecret") is False
        assert verify_signature("", BODY, "supersecret") is False

    def test_no_secret_disables_verification(self):
        assert verify_signature(None, BODY, "") is True
        assert verify_signature("sha256=garbage", BODY, None) is True

    def test_length_mismatch_is_not_an_error(self):
        assert verify_signature("sha256=bad", BODY, "supersecret") is False
        assert verify_signature(_sign("supersecret", BODY) + "00", BODY, "supersecret") is False

    def test_missing_prefix(self):
        digest = hmac.new(b"supersecret", BODY, hashlib.sha256).hexdigest()
        assert verify_signature(digest, BODY, "supersecret") is False

    def test_non_ascii_header(self):
        assert verify_signature("sha256=ü" * 8, BODY, "supersecret") is False
