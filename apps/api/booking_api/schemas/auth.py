"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from booking_api.db.enums import UserRole


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    customer_id: UUID
    role: str


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    Returned by the get_current_session dependency. The role is the one
    held in the tenant of the request, not the one baked into the token.
    """
    user_id: UUID
    customer_id: UUID
    role: UserRole  # Validated enum
    email: str
    name: str
