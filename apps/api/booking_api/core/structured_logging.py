"""Structured logging helpers (identifiers only, no personal data)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    user_id: UUID | str | None = None,
    customer_id: UUID | str | None = None,
    booking_id: UUID | str | None = None,
    professional_id: UUID | str | None = None,
    reason: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict suitable for ``extra=``."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if customer_id:
        context["customer_id"] = str(customer_id)
    if booking_id:
        context["booking_id"] = str(booking_id)
    if professional_id:
        context["professional_id"] = str(professional_id)
    if reason:
        context["reason"] = reason
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
