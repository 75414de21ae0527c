"""
Webhook Signature Verification

Inbound events from the meeting-bot service carry an HMAC-SHA256 hex digest
of the raw request body in the ``X-MeetingBaas-Signature`` header, keyed
with MEETINGBAAS_WEBHOOK_SECRET. A ``sha256=`` prefix on the header value
is accepted.

When no secret is configured, verification is skipped and a warning banner
is logged on every request so the degraded mode cannot go unnoticed.
"""

import hashlib
import hmac
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-MeetingBaas-Signature"
_SIGNATURE_PREFIX = "sha256="


class WebhookSignatureError(Exception):
    """
    Raised when an inbound webhook fails signature verification.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging/metrics
    """
    def __init__(self, message: str, code: str = "WEBHOOK_SIGNATURE_INVALID"):
        self.message = message
        self.code = code
        super().__init__(message)


def compute_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``body`` keyed with ``secret``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    body: bytes,
    signature_header: Optional[str],
    secret: Optional[str] = None
) -> bool:
    """
    Verify the signature of a raw webhook body.

    Args:
        body: Raw request body bytes, exactly as received
        signature_header: Value of the signature header, if any
        secret: Shared secret (default: MEETINGBAAS_WEBHOOK_SECRET)

    Returns:
        True if the signature was verified, False if verification was
        skipped because no secret is configured

    Raises:
        WebhookSignatureError: If a secret is configured and the signature
            is missing or does not match
    """
    secret = secret if secret is not None else os.getenv("MEETINGBAAS_WEBHOOK_SECRET")

    if not secret:
        logger.warning("=" * 60)
        logger.warning("WEBHOOK SIGNATURE VERIFICATION DISABLED")
        logger.warning("MEETINGBAAS_WEBHOOK_SECRET is not set; accepting unauthenticated webhook")
        logger.warning("=" * 60)
        return False

    if not signature_header or not signature_header.strip():
        logger.warning("Webhook rejected: missing signature header")
        raise WebhookSignatureError("Missing signature", code="WEBHOOK_SIGNATURE_MISSING")

    provided = signature_header.strip()
    if provided.lower().startswith(_SIGNATURE_PREFIX):
        provided = provided[len(_SIGNATURE_PREFIX):]

    expected = compute_signature(body, secret)
    if not hmac.compare_digest(expected.encode("ascii"), provided.lower().encode("utf-8")):
        logger.warning("Webhook rejected: signature mismatch")
        raise WebhookSignatureError("Invalid signature", code="WEBHOOK_SIGNATURE_INVALID")

    return True
