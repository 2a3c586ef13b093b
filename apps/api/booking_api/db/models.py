"""SQLAlchemy ORM models for tenants, scheduling and bookings."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booking_api.db.base import Base
from booking_api.db.enums import BookingStatus, UserRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Tenant & Users
# =============================================================================

class Customer(Base):
    """
    A tenant (business) in the multi-tenant system.

    All branches, services, professionals and bookings belong to a customer
    and must be scoped by customer_id in all queries.
    """
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url_slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    default_timezone: Mapped[str] = mapped_column(String(50), default="UTC", nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(onupdate=_utcnow, nullable=True)


class User(Base):
    """An end user or staff account. Tenant roles live on UserCustomer."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)


class UserCustomer(Base):
    """Membership of a user in a tenant, with the role they act under."""
    __tablename__ = "user_customers"
    __table_args__ = (
        UniqueConstraint("user_id", "customer_id", name="uq_user_customer"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.CLIENT.value, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)

    user: Mapped["User"] = relationship()
    customer: Mapped["Customer"] = relationship()


# =============================================================================
# Catalog: branches, services, pricing, professionals
# =============================================================================

class Branch(Base):
    """A physical location with its own weekly hours and timezone."""
    __tablename__ = "branches"
    __table_args__ = (
        Index("idx_branches_customer", "customer_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # IANA zone name; falls back to the tenant default when unset
    timezone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)

    customer: Mapped["Customer"] = relationship()


class Service(Base):
    """A bookable service. Duration is copied onto each booking at creation."""
    __tablename__ = "services"
    __table_args__ = (
        Index("idx_services_customer", "customer_id"),
        CheckConstraint("duration_minutes > 0", name="ck_service_duration_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)


class ServicePricing(Base):
    """Price of a service at one branch."""
    __tablename__ = "service_pricing"
    __table_args__ = (
        UniqueConstraint("service_id", "branch_id", name="uq_service_pricing_branch"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False
    )
    branch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)


class Professional(Base):
    """A staff member who can be booked at the branches they are assigned to."""
    __tablename__ = "professionals"
    __table_args__ = (
        Index("idx_professionals_customer", "customer_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)


class ProfessionalBranch(Base):
    """Assignment of a professional to a branch."""
    __tablename__ = "professional_branches"
    __table_args__ = (
        UniqueConstraint("professional_id", "branch_id", name="uq_professional_branch"),
        Index("idx_professional_branches_branch", "branch_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    branch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False
    )

    professional: Mapped["Professional"] = relationship()


# =============================================================================
# Weekly schedules
# =============================================================================

class BranchSchedule(Base):
    """
    Weekly operating hours of a branch.

    day_of_week: Sunday=0 ... Saturday=6. Times are local wall-clock "HH:MM"
    in the branch timezone.
    """
    __tablename__ = "branch_schedules"
    __table_args__ = (
        UniqueConstraint("branch_id", "day_of_week", name="uq_branch_schedule_day"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_branch_schedule_day"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    branch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(onupdate=_utcnow, nullable=True)


class ProfessionalSchedule(Base):
    """Weekly working hours of a professional, with an optional single break."""
    __tablename__ = "professional_schedules"
    __table_args__ = (
        UniqueConstraint(
            "professional_id", "day_of_week", name="uq_professional_schedule_day"
        ),
        CheckConstraint(
            "day_of_week >= 0 AND day_of_week <= 6", name="ck_professional_schedule_day"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    break_start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    break_end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(onupdate=_utcnow, nullable=True)


# =============================================================================
# Bookings
# =============================================================================

class Booking(Base):
    """
    A booked slot.

    Lifecycle: PENDING → CONFIRMED → CANCELLED (terminal).
    Duration, price and currency are frozen at creation time.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        Index("idx_bookings_professional_start", "professional_id", "scheduled_at"),
        Index("idx_bookings_user_start", "user_id", "scheduled_at"),
        Index("idx_bookings_branch_start", "branch_id", "scheduled_at"),
        Index("idx_bookings_customer_status", "customer_id", "status"),
        UniqueConstraint("display_id", name="uq_booking_display_id"),
        UniqueConstraint("confirmation_token", name="uq_booking_confirmation_token"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    display_id: Mapped[str] = mapped_column(String(16), nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    branch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False
    )
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Scheduling (stored in UTC)
    scheduled_at: Mapped[datetime] = mapped_column(nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    # Pricing snapshot
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=BookingStatus.PENDING.value, nullable=False
    )
    confirmation_token: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Relationships
    customer: Mapped["Customer"] = relationship()
    branch: Mapped["Branch"] = relationship()
    service: Mapped["Service"] = relationship()
    professional: Mapped["Professional"] = relationship()
    user: Mapped["User"] = relationship()


class ProfessionalSlotClaim(Base):
    """
    One 15-minute bucket held by a live booking for its professional.

    The unique constraint is the commit-time double-booking guard: two
    grid-aligned bookings touch a common bucket only if their intervals
    overlap.
    """
    __tablename__ = "professional_slot_claims"
    __table_args__ = (
        UniqueConstraint("professional_id", "slot_start", name="uq_professional_slot"),
        Index("idx_professional_slot_claims_booking", "booking_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    slot_start: Mapped[datetime] = mapped_column(nullable=False)


class UserSlotClaim(Base):
    """One 15-minute bucket held by a live booking for its user within a tenant."""
    __tablename__ = "user_slot_claims"
    __table_args__ = (
        UniqueConstraint("customer_id", "user_id", "slot_start", name="uq_user_slot"),
        Index("idx_user_slot_claims_booking", "booking_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    slot_start: Mapped[datetime] = mapped_column(nullable=False)
