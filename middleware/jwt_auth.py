"""
Owner token verification.

The frontend gateway signs a short-lived HS256 token for every owner call
(meeting reads, action item edits, reprocessing, chat, graph view). This
module checks that token and returns the caller's user id. Tokens are
never minted here.

Expected payload:
    user_id  caller id, compared against meetings.created_by_id
    iss      INTERNAL_JWT_ISSUER (default "meeting-frontend")
    aud      INTERNAL_JWT_AUDIENCE (default "meeting-backend")
    iat/exp  issue and expiry times

Only the first few characters of a token are ever logged.
"""

import os
import logging
from typing import Optional
from dataclasses import dataclass

import jwt
from jwt.exceptions import (
    InvalidTokenError,
    ExpiredSignatureError,
    InvalidIssuerError,
    InvalidAudienceError,
)

logger = logging.getLogger(__name__)

# Seconds of clock drift tolerated on exp/iat
CLOCK_SKEW_LEEWAY = 30

MIN_SECRET_LENGTH = 32

BEARER_SCHEME = "Bearer"

_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud"]

# Checked in order; the catch-all InvalidTokenError must stay last.
_DECODE_FAILURES = (
    (ExpiredSignatureError, "Token has expired", "JWT_EXPIRED"),
    (InvalidIssuerError, "Invalid token issuer", "JWT_INVALID_ISSUER"),
    (InvalidAudienceError, "Invalid token audience", "JWT_INVALID_AUDIENCE"),
    (InvalidTokenError, "Invalid token", "JWT_INVALID"),
)


@dataclass(frozen=True)
class JWTClaims:
    """The verified caller. Timestamps are unix seconds."""
    user_id: str
    issued_at: int
    expires_at: int


class JWTVerificationError(Exception):
    """
    A token was missing, malformed, rejected, or could not be checked.

    ``code`` is stable and safe to log; ``message`` is safe to return to
    the caller.
    """
    def __init__(self, message: str, code: str = "JWT_INVALID"):
        self.message = message
        self.code = code
        super().__init__(message)


def get_jwt_config() -> tuple[str, str, str]:
    """
    Read (secret, issuer, audience) from the environment.

    A missing or short secret is a server misconfiguration and is
    reported with its own code so callers can answer 500, not 401.
    """
    secret = os.getenv("INTERNAL_JWT_SECRET", "")
    issuer = os.getenv("INTERNAL_JWT_ISSUER", "meeting-frontend")
    audience = os.getenv("INTERNAL_JWT_AUDIENCE", "meeting-backend")

    if not secret:
        logger.error("Owner token secret is not set: INTERNAL_JWT_SECRET")
        raise JWTVerificationError("JWT verification not configured", code="JWT_NOT_CONFIGURED")
    if len(secret) < MIN_SECRET_LENGTH:
        logger.error(f"Owner token secret shorter than {MIN_SECRET_LENGTH} characters")
        raise JWTVerificationError("JWT verification misconfigured", code="JWT_MISCONFIGURED")

    return secret, issuer, audience


def _decode(token: str, secret: str, issuer: str, audience: str) -> dict:
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            issuer=issuer,
            audience=audience,
            leeway=CLOCK_SKEW_LEEWAY,
            options={"require": _REQUIRED_CLAIMS},
        )
    except InvalidTokenError as e:
        for error_type, message, code in _DECODE_FAILURES:
            if isinstance(e, error_type):
                logger.warning(f"Owner token rejected: code={code}, reason={type(e).__name__}")
                raise JWTVerificationError(message, code=code) from e
        raise


def verify_internal_jwt(token: str) -> JWTClaims:
    """
    Check an owner token and return who sent it.

    Args:
        token: Raw token, already stripped of the "Bearer " scheme

    Returns:
        JWTClaims for the caller

    Raises:
        JWTVerificationError: Bad signature, wrong issuer or audience,
            expired, missing ``user_id``, or verification not configured
    """
    secret, issuer, audience = get_jwt_config()
    logger.debug(f"Checking owner token: prefix={token[:8]}...")

    payload = _decode(token, secret, issuer, audience)

    user_id = payload.get("user_id")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Owner token rejected: code=JWT_MISSING_USER")
        raise JWTVerificationError("Missing required claim: user_id", code="JWT_MISSING_USER")

    logger.info(f"Owner token accepted: user={user_id[:8]}...")
    return JWTClaims(
        user_id=user_id,
        issued_at=payload.get("iat", 0),
        expires_at=payload.get("exp", 0),
    )


def extract_bearer_token(authorization_header: Optional[str]) -> Optional[str]:
    """Token part of ``Authorization: Bearer <token>``, or None if absent or another scheme."""
    if not authorization_header:
        return None

    scheme, _, token = authorization_header.partition(" ")
    if scheme != BEARER_SCHEME:
        return None
    return token.strip() or None


def is_jwt_auth_configured() -> bool:
    """Whether owner routes can verify tokens with the current environment."""
    return len(os.getenv("INTERNAL_JWT_SECRET", "")) >= MIN_SECRET_LENGTH
