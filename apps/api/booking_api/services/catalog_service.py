"""Catalog lookups - tenant-scoped reads of branches, services, professionals.

Every lookup filters on customer_id. A reference from another tenant is
indistinguishable from one that does not exist.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from booking_api.db.models import (
    Branch,
    Professional,
    ProfessionalBranch,
    Service,
    ServicePricing,
)
from booking_api.services.booking_errors import InvalidBookingRequest, Reason


def get_branch(db: Session, customer_id: UUID, branch_id: UUID) -> Branch:
    """Active (not soft-deleted) branch of the tenant."""
    branch = db.query(Branch).filter(
        Branch.id == branch_id,
        Branch.customer_id == customer_id,
        Branch.deleted_at.is_(None),
    ).first()
    if not branch:
        raise InvalidBookingRequest(Reason.INVALID_REFERENCE, "Invalid branch")
    return branch


def get_service(db: Session, customer_id: UUID, service_id: UUID) -> Service:
    """Active service of the tenant."""
    service = db.query(Service).filter(
        Service.id == service_id,
        Service.customer_id == customer_id,
        Service.is_active == True,  # noqa: E712
    ).first()
    if not service:
        raise InvalidBookingRequest(Reason.INVALID_REFERENCE, "Invalid service")
    return service


def get_professional(
    db: Session, customer_id: UUID, professional_id: UUID
) -> Professional:
    """Active professional of the tenant."""
    professional = db.query(Professional).filter(
        Professional.id == professional_id,
        Professional.customer_id == customer_id,
        Professional.is_active == True,  # noqa: E712
    ).first()
    if not professional:
        raise InvalidBookingRequest(Reason.INVALID_REFERENCE, "Invalid professional")
    return professional


def ensure_assigned(db: Session, professional_id: UUID, branch_id: UUID) -> None:
    """Raise unless the professional is assigned to the branch."""
    assigned = db.query(ProfessionalBranch.id).filter(
        ProfessionalBranch.professional_id == professional_id,
        ProfessionalBranch.branch_id == branch_id,
    ).first()
    if not assigned:
        raise InvalidBookingRequest(
            Reason.PROFESSIONAL_NOT_AT_BRANCH,
            "Professional does not work at this branch",
        )


def get_branch_professional(
    db: Session, customer_id: UUID, branch_id: UUID, professional_id: UUID
) -> Professional:
    """Active tenant professional that is assigned to the branch."""
    professional = get_professional(db, customer_id, professional_id)
    ensure_assigned(db, professional.id, branch_id)
    return professional


def list_branch_professionals(db: Session, branch_id: UUID) -> list[Professional]:
    """
    Active professionals assigned to a branch.

    Ordered by (name, id) so auto-assignment and aggregated availability pick
    professionals in the same stable order.
    """
    return (
        db.query(Professional)
        .join(ProfessionalBranch, ProfessionalBranch.professional_id == Professional.id)
        .filter(
            ProfessionalBranch.branch_id == branch_id,
            Professional.is_active == True,  # noqa: E712
        )
        .order_by(Professional.name, Professional.id)
        .all()
    )


def get_active_price(db: Session, service_id: UUID, branch_id: UUID) -> Decimal:
    """Active price of a service at a branch, quantized to two places."""
    pricing = db.query(ServicePricing).filter(
        ServicePricing.service_id == service_id,
        ServicePricing.branch_id == branch_id,
        ServicePricing.is_active == True,  # noqa: E712
    ).first()
    if not pricing:
        raise InvalidBookingRequest(
            Reason.PRICING_MISSING,
            "Service has no active pricing at this branch",
        )
    return Decimal(pricing.price).quantize(Decimal("0.01"))
