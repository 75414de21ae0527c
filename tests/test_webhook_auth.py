"""Tests for inbound webhook HMAC verification."""
import hashlib
import hmac

import pytest
from hypothesis import given, settings, strategies as st

from middleware.webhook_auth import WebhookSignatureError, compute_signature, verify_webhook_signature

SECRET = "shared-secret"
BODY = b'{"event":"complete","data":{"bot_id":"bot-1"}}'


def test_compute_signature_is_hex_hmac_sha256():
    expected = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()

    assert compute_signature(BODY, SECRET) == expected


def test_valid_signature_verifies():
    assert verify_webhook_signature(BODY, compute_signature(BODY, SECRET), secret=SECRET) is True


def test_prefix_and_case_are_tolerated():
    header = "SHA256=" + compute_signature(BODY, SECRET).upper()

    assert verify_webhook_signature(BODY, header, secret=SECRET) is True


def test_missing_header_is_rejected():
    with pytest.raises(WebhookSignatureError) as exc_info:
        verify_webhook_signature(BODY, None, secret=SECRET)

    assert exc_info.value.code == "WEBHOOK_SIGNATURE_MISSING"


def test_non_ascii_header_is_rejected_not_crashed():
    with pytest.raises(WebhookSignatureError) as exc_info:
        verify_webhook_signature(BODY, "sha256=é" * 8, secret=SECRET)

    assert exc_info.value.code == "WEBHOOK_SIGNATURE_INVALID"


def test_no_secret_skips_verification(monkeypatch):
    monkeypatch.delenv("MEETINGBAAS_WEBHOOK_SECRET", raising=False)

    assert verify_webhook_signature(BODY, None) is False


@given(body=st.binary(max_size=512), tamper=st.binary(min_size=1, max_size=16))
@settings(max_examples=100)
def test_any_body_change_invalidates_signature(body, tamper):
    signature = compute_signature(body, SECRET)

    with pytest.raises(WebhookSignatureError):
        verify_webhook_signature(body + tamper, signature, secret=SECRET)
