"""Service layer modules."""

# Import service modules (not individual functions) for cleaner access
from booking_api.services import availability_service
from booking_api.services import booking_service
from booking_api.services import catalog_service

__all__ = [
    "availability_service",
    "booking_service",
    "catalog_service",
]
