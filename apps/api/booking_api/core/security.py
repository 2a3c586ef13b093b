"""Security utilities for JWT session tokens and booking confirmation tokens."""

import uuid
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from booking_api.core.config import settings


# =============================================================================
# Session Token (JWT in cookie)
# =============================================================================

def create_session_token(
    user_id: UUID,
    customer_id: UUID,
    role: str,
) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET).
    Token carries the user identity and the tenant it was issued for.
    """
    payload = {
        "sub": str(user_id),
        "customer_id": str(customer_id),
        "role": role,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Confirmation Tokens
# =============================================================================

def generate_confirmation_token() -> str:
    """Generate an opaque, globally unique booking confirmation token."""
    return str(uuid.uuid4())
