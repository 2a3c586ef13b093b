"""
Test configuration and fixtures.

Provides:
- A fresh SQLite database per test (schema from Base.metadata)
- A salon tenant with branch, schedules, professional, service and pricing
- JWT session minting for authenticated tests
- HTTPX AsyncClient with proper headers
"""
import os
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Generator

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ["TESTING"] = "1"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from booking_api.core.deps import COOKIE_NAME, get_db
from booking_api.core.security import create_session_token
from booking_api.db.base import Base
from booking_api.db.enums import UserRole
from booking_api.db.models import (
    Branch,
    BranchSchedule,
    Customer,
    Professional,
    ProfessionalBranch,
    ProfessionalSchedule,
    Service,
    ServicePricing,
    User,
    UserCustomer,
)
from booking_api.main import app
from booking_api.services.booking_service import CallerContext
from salon_helpers import next_weekday

WEEKDAYS = (1, 2, 3, 4, 5)  # Monday..Friday, Sunday=0
SATURDAY = 6


# =============================================================================
# Date Fixtures
# =============================================================================

@pytest.fixture
def monday() -> date:
    return next_weekday(0)


@pytest.fixture
def saturday() -> date:
    return next_weekday(5)


# =============================================================================
# Database Fixtures
# =============================================================================

def _enable_sqlite_savepoints(engine) -> None:
    """pysqlite needs explicit BEGIN handling for SAVEPOINT to work."""

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture(scope="function")
def engine(tmp_path):
    """File-backed SQLite engine with the full schema, one per test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'booking.db'}",
        connect_args={"check_same_thread": False},
    )
    _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Salon Fixtures
# =============================================================================

def add_branch_hours(db: Session, branch: Branch, days=WEEKDAYS, start="09:00", end="17:00"):
    for dow in days:
        db.add(BranchSchedule(
            branch_id=branch.id, day_of_week=dow, start_time=start, end_time=end
        ))
    db.add(BranchSchedule(
        branch_id=branch.id,
        day_of_week=SATURDAY,
        start_time="09:00",
        end_time="17:00",
        is_closed=True,
    ))


def add_professional(
    db: Session,
    customer: Customer,
    branch: Branch,
    name: str,
    break_start: str | None = "12:00",
    break_end: str | None = "13:00",
    start: str = "09:00",
    end: str = "17:00",
) -> Professional:
    professional = Professional(customer_id=customer.id, name=name)
    db.add(professional)
    db.flush()
    db.add(ProfessionalBranch(professional_id=professional.id, branch_id=branch.id))
    for dow in WEEKDAYS:
        db.add(ProfessionalSchedule(
            professional_id=professional.id,
            day_of_week=dow,
            start_time=start,
            end_time=end,
            break_start_time=break_start,
            break_end_time=break_end,
        ))
    db.add(ProfessionalSchedule(
        professional_id=professional.id,
        day_of_week=SATURDAY,
        start_time="09:00",
        end_time="17:00",
        is_closed=True,
    ))
    db.flush()
    return professional


def add_member(db: Session, customer: Customer, name: str, role: UserRole) -> User:
    user = User(email=f"{name.lower()}-{uuid.uuid4().hex[:8]}@test.com", name=name)
    db.add(user)
    db.flush()
    db.add(UserCustomer(user_id=user.id, customer_id=customer.id, role=role.value))
    db.flush()
    return user


@dataclass
class Salon:
    """A tenant with one branch, one professional (with a lunch break) and one service."""
    customer: Customer
    branch: Branch
    professional: Professional
    service: Service
    client: User
    other_client: User
    admin: User
    staff: User

    def caller(self, user: User, role: UserRole = UserRole.CLIENT) -> CallerContext:
        return CallerContext(user_id=user.id, customer_id=self.customer.id, role=role)


def build_salon(db: Session, slug: str = "acme") -> Salon:
    customer = Customer(
        name=f"{slug.title()} Salon",
        url_slug=slug,
        currency="EUR",
        default_timezone="UTC",
    )
    db.add(customer)
    db.flush()

    branch = Branch(customer_id=customer.id, name="Downtown")
    db.add(branch)
    db.flush()
    add_branch_hours(db, branch)

    professional = add_professional(db, customer, branch, "Alice")

    service = Service(customer_id=customer.id, name="Haircut", duration_minutes=60)
    db.add(service)
    db.flush()
    db.add(ServicePricing(service_id=service.id, branch_id=branch.id, price=Decimal("25.00")))

    salon = Salon(
        customer=customer,
        branch=branch,
        professional=professional,
        service=service,
        client=add_member(db, customer, "Carol", UserRole.CLIENT),
        other_client=add_member(db, customer, "Dave", UserRole.CLIENT),
        admin=add_member(db, customer, "Erin", UserRole.ADMIN),
        staff=add_member(db, customer, "Sam", UserRole.STAFF),
    )
    db.commit()
    return salon


@pytest.fixture(scope="function")
def salon(db: Session) -> Salon:
    return build_salon(db)


@pytest.fixture(scope="function")
def other_salon(db: Session) -> Salon:
    """A second, unrelated tenant."""
    return build_salon(db, slug="globex")


@pytest.fixture(scope="function")
def second_professional(db: Session, salon: Salon) -> Professional:
    """Bob works the same hours as Alice but takes no break."""
    professional = add_professional(
        db, salon.customer, salon.branch, "Bob", break_start=None, break_end=None
    )
    db.commit()
    return professional


# =============================================================================
# Client Fixtures
# =============================================================================

def session_cookie(salon: Salon, user: User, role: UserRole) -> dict[str, str]:
    token = create_session_token(
        user_id=user.id, customer_id=salon.customer.id, role=role.value
    )
    return {COOKIE_NAME: token}


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public endpoints."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


def _authed(db: Session, cookies: dict[str, str]) -> AsyncClient:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=cookies,
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    )


@pytest.fixture(scope="function")
async def user_client(db: Session, salon: Salon) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient signed in as the salon's CLIENT user."""
    async with _authed(db, session_cookie(salon, salon.client, UserRole.CLIENT)) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(db: Session, salon: Salon) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient signed in as the salon's ADMIN user."""
    async with _authed(db, session_cookie(salon, salon.admin, UserRole.ADMIN)) as c:
        yield c
    app.dependency_overrides.clear()
