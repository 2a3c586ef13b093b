"""Create tenant, catalog, schedule and booking tables.

Revision ID: 0001_booking_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_booking_schema"
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column("id", sa.Uuid(), primary_key=True, nullable=False)


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _fk(name: str, target: str, nullable: bool = False):
    return sa.Column(
        name,
        sa.Uuid(),
        sa.ForeignKey(f"{target}.id", ondelete="CASCADE"),
        nullable=nullable,
    )


def upgrade():
    """Create all booking engine tables."""

    # ==========================================================================
    # Tenants & users
    # ==========================================================================
    op.create_table(
        "customers",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url_slug", sa.String(100), nullable=False, unique=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("default_timezone", sa.String(50), nullable=False, server_default="UTC"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )

    op.create_table(
        "user_customers",
        _id(),
        _fk("user_id", "users"),
        _fk("customer_id", "customers"),
        sa.Column("role", sa.String(20), nullable=False, server_default="CLIENT"),
        _created_at(),
        sa.UniqueConstraint("user_id", "customer_id", name="uq_user_customer"),
    )

    # ==========================================================================
    # Catalog
    # ==========================================================================
    op.create_table(
        "branches",
        _id(),
        _fk("customer_id", "customers"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("timezone", sa.String(50), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("idx_branches_customer", "branches", ["customer_id"])

    op.create_table(
        "services",
        _id(),
        _fk("customer_id", "customers"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.CheckConstraint("duration_minutes > 0", name="ck_service_duration_positive"),
    )
    op.create_index("idx_services_customer", "services", ["customer_id"])

    op.create_table(
        "service_pricing",
        _id(),
        _fk("service_id", "services"),
        _fk("branch_id", "branches"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.UniqueConstraint("service_id", "branch_id", name="uq_service_pricing_branch"),
    )

    op.create_table(
        "professionals",
        _id(),
        _fk("customer_id", "customers"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_index("idx_professionals_customer", "professionals", ["customer_id"])

    op.create_table(
        "professional_branches",
        _id(),
        _fk("professional_id", "professionals"),
        _fk("branch_id", "branches"),
        sa.UniqueConstraint("professional_id", "branch_id", name="uq_professional_branch"),
    )
    op.create_index(
        "idx_professional_branches_branch", "professional_branches", ["branch_id"]
    )

    # ==========================================================================
    # Weekly schedules (day_of_week: Sunday=0 ... Saturday=6)
    # ==========================================================================
    op.create_table(
        "branch_schedules",
        _id(),
        _fk("branch_id", "branches"),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("branch_id", "day_of_week", name="uq_branch_schedule_day"),
        sa.CheckConstraint(
            "day_of_week >= 0 AND day_of_week <= 6", name="ck_branch_schedule_day"
        ),
    )

    op.create_table(
        "professional_schedules",
        _id(),
        _fk("professional_id", "professionals"),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("break_start_time", sa.String(5), nullable=True),
        sa.Column("break_end_time", sa.String(5), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "professional_id", "day_of_week", name="uq_professional_schedule_day"
        ),
        sa.CheckConstraint(
            "day_of_week >= 0 AND day_of_week <= 6", name="ck_professional_schedule_day"
        ),
    )

    # ==========================================================================
    # Bookings
    # ==========================================================================
    op.create_table(
        "bookings",
        _id(),
        sa.Column("display_id", sa.String(16), nullable=False),
        _fk("customer_id", "customers"),
        _fk("branch_id", "branches"),
        _fk("service_id", "services"),
        _fk("professional_id", "professionals"),
        _fk("user_id", "users"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("confirmation_token", sa.String(64), nullable=False),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("display_id", name="uq_booking_display_id"),
        sa.UniqueConstraint("confirmation_token", name="uq_booking_confirmation_token"),
    )
    op.create_index(
        "idx_bookings_professional_start", "bookings", ["professional_id", "scheduled_at"]
    )
    op.create_index("idx_bookings_user_start", "bookings", ["user_id", "scheduled_at"])
    op.create_index("idx_bookings_branch_start", "bookings", ["branch_id", "scheduled_at"])
    op.create_index("idx_bookings_customer_status", "bookings", ["customer_id", "status"])

    # ==========================================================================
    # Slot claims - one row per 15-minute bucket held by a live booking
    # ==========================================================================
    op.create_table(
        "professional_slot_claims",
        _id(),
        _fk("booking_id", "bookings"),
        _fk("professional_id", "professionals"),
        sa.Column("slot_start", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("professional_id", "slot_start", name="uq_professional_slot"),
    )
    op.create_index(
        "idx_professional_slot_claims_booking", "professional_slot_claims", ["booking_id"]
    )

    op.create_table(
        "user_slot_claims",
        _id(),
        _fk("booking_id", "bookings"),
        _fk("customer_id", "customers"),
        _fk("user_id", "users"),
        sa.Column("slot_start", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("customer_id", "user_id", "slot_start", name="uq_user_slot"),
    )
    op.create_index("idx_user_slot_claims_booking", "user_slot_claims", ["booking_id"])


def downgrade():
    """Drop all booking engine tables."""
    op.drop_table("user_slot_claims")
    op.drop_table("professional_slot_claims")
    op.drop_table("bookings")
    op.drop_table("professional_schedules")
    op.drop_table("branch_schedules")
    op.drop_table("professional_branches")
    op.drop_table("professionals")
    op.drop_table("service_pricing")
    op.drop_table("services")
    op.drop_table("branches")
    op.drop_table("user_customers")
    op.drop_table("users")
    op.drop_table("customers")
