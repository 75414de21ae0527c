"""
Context Extraction Utilities

FastAPI dependencies that establish who is calling an owner-facing route.
The caller identity comes only from a verified internal JWT; there are no
header or environment fallbacks.
"""

import uuid
import logging
from fastapi import HTTPException, Request

from middleware.jwt_auth import (
    JWTVerificationError,
    extract_bearer_token,
    verify_internal_jwt,
)
from models.request_context import RequestContext

logger = logging.getLogger(__name__)

# Configuration problems are the server's fault, not the caller's
_SERVER_ERROR_CODES = {"JWT_NOT_CONFIGURED", "JWT_MISCONFIGURED"}


def get_owner_context(request: Request) -> RequestContext:
    """
    Verify the bearer token and return the caller's context.

    Args:
        request: FastAPI Request object

    Returns:
        RequestContext for the verified caller

    Raises:
        HTTPException: 401 for a missing or invalid token, 500 when JWT
            verification is not configured
    """
    request_id = str(uuid.uuid4())
    token = extract_bearer_token(request.headers.get("Authorization"))

    if token is None:
        logger.warning(f"Missing bearer token: request_id={request_id}, path={request.url.path}")
        raise HTTPException(
            status_code=401,
            detail={"error": "Missing bearer token", "code": "JWT_MISSING"}
        )

    try:
        claims = verify_internal_jwt(token)
    except JWTVerificationError as e:
        status_code = 500 if e.code in _SERVER_ERROR_CODES else 401
        logger.warning(
            f"Owner authentication failed: request_id={request_id}, code={e.code}"
        )
        raise HTTPException(
            status_code=status_code,
            detail={"error": e.message, "code": e.code}
        )

    logger.info(
        f"Context extracted: request_id={request_id}, user_id={claims.user_id}"
    )
    return RequestContext(user_id=claims.user_id, request_id=request_id)
