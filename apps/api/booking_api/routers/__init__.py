"""API routers."""

from booking_api.routers.bookings import router as bookings_router

__all__ = [
    "bookings_router",
]
