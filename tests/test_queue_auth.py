"""Tests for queue delivery signature verification."""
import time

import jwt as pyjwt
import pytest

from middleware.queue_auth import QueueSignatureError, body_hash, verify_queue_signature

BODY = b'{"meetingId":"meeting-1"}'
SUBJECT = "https://api.example.com/queue/process-meeting"


def make_token(key="current", **overrides):
    now = int(time.time())
    claims = {"iss": "Upstash", "sub": SUBJECT, "iat": now, "exp": now + 300, "body": body_hash(BODY)}
    claims.update(overrides)
    return pyjwt.encode(claims, key, algorithm="HS256")


def verify(token, body=BODY):
    return verify_queue_signature(body, token, current_key="current", next_key="next", subject=SUBJECT)


def test_current_key_verifies():
    assert verify(make_token()) is True


def test_next_key_verifies_during_rotation():
    assert verify(make_token(key="next")) is True


def test_padded_body_claim_is_accepted():
    assert verify(make_token(body=body_hash(BODY) + "=")) is True


@pytest.mark.parametrize("token_kwargs,body,code", [
    ({"key": "unknown"}, BODY, "QUEUE_SIGNATURE_INVALID"),
    ({"iss": "Someone"}, BODY, "QUEUE_SIGNATURE_INVALID"),
    ({"sub": "https://elsewhere.example.com"}, BODY, "QUEUE_SUBJECT_MISMATCH"),
    ({}, b'{"meetingId":"meeting-2"}', "QUEUE_BODY_MISMATCH"),
    ({"exp": int(time.time()) - 600}, BODY, "QUEUE_SIGNATURE_EXPIRED"),
])
def test_rejections(token_kwargs, body, code):
    with pytest.raises(QueueSignatureError) as exc_info:
        verify(make_token(**token_kwargs), body=body)

    assert exc_info.value.code == code


def test_missing_signature_is_rejected():
    with pytest.raises(QueueSignatureError) as exc_info:
        verify(None)

    assert exc_info.value.code == "QUEUE_SIGNATURE_MISSING"


def test_no_keys_skips_verification(monkeypatch):
    monkeypatch.delenv("QSTASH_CURRENT_SIGNING_KEY", raising=False)
    monkeypatch.delenv("QSTASH_NEXT_SIGNING_KEY", raising=False)

    assert verify_queue_signature(BODY, None) is False
