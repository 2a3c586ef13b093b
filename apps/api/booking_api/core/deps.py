"""FastAPI dependencies for tenant resolution, authentication, and database access."""

import logging
from typing import Generator

import jwt
from fastapi import Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from booking_api.core.security import decode_session_token
from booking_api.db.enums import UserRole
from booking_api.db.models import Customer, User, UserCustomer
from booking_api.db.session import SessionLocal
from booking_api.schemas.auth import TokenPayload, UserSession
from booking_api.services.booking_service import CallerContext

logger = logging.getLogger(__name__)


# Cookie and header names
COOKIE_NAME = "booking_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_customer(customer_slug: str, db: Session = Depends(get_db)) -> Customer:
    """Resolve the tenant from the ``customer_slug`` path segment."""
    customer = db.query(Customer).filter(Customer.url_slug == customer_slug).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


def _session_for(
    request: Request,
    db: Session,
    customer: Customer,
) -> UserSession | None:
    """
    Decode the session cookie for a tenant.

    Returns None when no cookie is present.

    Raises:
        HTTPException 401: Invalid token or unknown/disabled user
        HTTPException 403: No membership in this tenant, or unknown role
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None

    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except (jwt.InvalidTokenError, ValidationError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == payload.sub).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    membership = db.query(UserCustomer).filter(
        UserCustomer.user_id == user.id,
        UserCustomer.customer_id == customer.id,
    ).first()
    if not membership:
        raise HTTPException(status_code=403, detail="No membership in this customer")

    # Validate role is a known enum value - return 403 not 500
    if not UserRole.has_value(membership.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{membership.role}'. Contact administrator.",
        )

    return UserSession(
        user_id=user.id,
        customer_id=customer.id,
        role=UserRole(membership.role),
        email=user.email,
        name=user.name,
    )


def get_current_session(
    request: Request,
    db: Session = Depends(get_db),
    customer: Customer = Depends(get_customer),
) -> UserSession:
    """
    Session context of an authenticated caller within the request's tenant.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: No membership or unknown role
    """
    session = _session_for(request, db, customer)
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session


def get_optional_session(
    request: Request,
    db: Session = Depends(get_db),
    customer: Customer = Depends(get_customer),
) -> UserSession | None:
    """
    Session context for public routes.

    A missing, stale or foreign-tenant cookie degrades to anonymous (None)
    instead of failing the request.
    """
    try:
        return _session_for(request, db, customer)
    except HTTPException as exc:
        logger.debug("Ignoring unusable session cookie: %s", exc.detail)
        return None


def require_roles(allowed_roles: list[UserRole]):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.get("/bookings", dependencies=[Depends(require_roles([UserRole.ADMIN]))])
    """
    def dependency(session: UserSession = Depends(get_current_session)) -> UserSession:
        if session.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return session
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to authenticated state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


def caller_context(session: UserSession) -> CallerContext:
    """Engine-facing view of a session."""
    return CallerContext(
        user_id=session.user_id,
        customer_id=session.customer_id,
        role=session.role,
    )
