"""FastAPI application entry point."""
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from booking_api.core.config import settings
from booking_api.core.deps import get_db
from booking_api.core.structured_logging import build_log_context
from booking_api.services.booking_errors import BookingError, ErrorKind

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from booking_api.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Booking API",
    description="Multi-tenant appointment booking API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
)


# ============================================================================
# Booking Errors
# ============================================================================

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
}


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Map engine errors to HTTP by kind, keeping the machine-readable reason."""
    status_code = ERROR_STATUS[exc.kind]
    if status_code == 409:
        logger.info(
            "Booking conflict",
            extra=build_log_context(
                reason=exc.reason.value,
                route=request.url.path,
                method=request.method,
            ),
        )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


app.add_exception_handler(BookingError, booking_error_handler)


# ============================================================================
# Routers
# ============================================================================

from booking_api.routers import bookings

app.include_router(bookings.router, prefix="/salon/{customer_slug}", tags=["bookings"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    db.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
