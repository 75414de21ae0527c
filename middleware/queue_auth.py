"""
Queue Delivery Signature Verification

QStash signs every delivery to the worker endpoint with a JWT in the
``Upstash-Signature`` header (HS256). Two signing keys are active at any
time so they can be rotated: the current key is tried first, then the next
key.

Claims checked:
- iss: must be "Upstash"
- sub: must equal WORKER_URL, when WORKER_URL is configured
- exp / nbf: with clock skew tolerance
- body: base64url (unpadded) SHA-256 of the raw request body

These keys are unrelated to the inbound webhook secret.
"""

import base64
import hashlib
import hmac
import logging
import os
from typing import Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidSignatureError, InvalidTokenError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Upstash-Signature"
QSTASH_ISSUER = "Upstash"

# Clock skew tolerance in seconds
CLOCK_SKEW_LEEWAY = 30


class QueueSignatureError(Exception):
    """
    Raised when a queue delivery fails signature verification.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging/metrics
    """
    def __init__(self, message: str, code: str = "QUEUE_SIGNATURE_INVALID"):
        self.message = message
        self.code = code
        super().__init__(message)


def body_hash(body: bytes) -> str:
    """Unpadded base64url SHA-256 digest, as carried in the ``body`` claim."""
    digest = hashlib.sha256(body).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def _verify_with_key(token: str, key: str, body: bytes, subject: Optional[str]) -> dict:
    payload = jwt.decode(
        token,
        key,
        algorithms=["HS256"],
        issuer=QSTASH_ISSUER,
        leeway=CLOCK_SKEW_LEEWAY,
        options={"require": ["iss", "exp", "body"], "verify_aud": False},
    )

    if subject and payload.get("sub") != subject:
        raise QueueSignatureError("Signature subject mismatch", code="QUEUE_SUBJECT_MISMATCH")

    claimed = str(payload.get("body", "")).rstrip("=")
    if not hmac.compare_digest(claimed.encode("utf-8"), body_hash(body).encode("ascii")):
        raise QueueSignatureError("Body hash mismatch", code="QUEUE_BODY_MISMATCH")

    return payload


def verify_queue_signature(
    body: bytes,
    signature: Optional[str],
    current_key: Optional[str] = None,
    next_key: Optional[str] = None,
    subject: Optional[str] = None
) -> bool:
    """
    Verify a queue delivery.

    Args:
        body: Raw request body bytes
        signature: Value of the Upstash-Signature header
        current_key: Current signing key (default: QSTASH_CURRENT_SIGNING_KEY)
        next_key: Next signing key (default: QSTASH_NEXT_SIGNING_KEY)
        subject: Expected ``sub`` claim (default: WORKER_URL)

    Returns:
        True if verified, False if verification was skipped because no
        signing key is configured

    Raises:
        QueueSignatureError: If keys are configured and no key verifies
            the delivery
    """
    current_key = current_key if current_key is not None else os.getenv("QSTASH_CURRENT_SIGNING_KEY")
    next_key = next_key if next_key is not None else os.getenv("QSTASH_NEXT_SIGNING_KEY")
    subject = subject if subject is not None else os.getenv("WORKER_URL")

    keys = [key for key in (current_key, next_key) if key]
    if not keys:
        logger.warning("=" * 60)
        logger.warning("QUEUE SIGNATURE VERIFICATION DISABLED")
        logger.warning("QSTASH_CURRENT_SIGNING_KEY / QSTASH_NEXT_SIGNING_KEY are not set")
        logger.warning("Accepting unauthenticated job delivery")
        logger.warning("=" * 60)
        return False

    if not signature or not signature.strip():
        logger.warning("Queue delivery rejected: missing signature header")
        raise QueueSignatureError("Missing signature", code="QUEUE_SIGNATURE_MISSING")

    error = QueueSignatureError("Invalid signature", code="QUEUE_SIGNATURE_INVALID")
    for key in keys:
        try:
            _verify_with_key(signature.strip(), key, body, subject)
            return True
        except InvalidSignatureError:
            # Not signed with this key; try the next one
            continue
        except ExpiredSignatureError:
            error = QueueSignatureError("Signature has expired", code="QUEUE_SIGNATURE_EXPIRED")
        except InvalidTokenError as e:
            error = QueueSignatureError(
                f"Invalid signature: {type(e).__name__}", code="QUEUE_SIGNATURE_INVALID"
            )
        except QueueSignatureError as e:
            error = e
        break

    logger.warning(f"Queue delivery rejected: code={error.code}")
    raise error
