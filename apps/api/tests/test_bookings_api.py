"""
Tests for the bookings HTTP API.

Coverage:
- Availability (anonymous and signed in)
- Create / read / update / cancel with status codes and error bodies
- Session, tenant and CSRF enforcement
- Public token endpoints
- Health check
"""

import uuid

import jwt
from httpx import ASGITransport, AsyncClient

from booking_api.core.config import settings
from booking_api.core.deps import get_db
from booking_api.db.enums import UserRole
from booking_api.main import app
from booking_api.services import booking_service

from conftest import session_cookie
from salon_helpers import at


def _base(salon) -> str:
    return f"/salon/{salon.customer.url_slug}"


def _create_body(salon, when, professional_id="alice"):
    body = {
        "branch_id": str(salon.branch.id),
        "service_id": str(salon.service.id),
        "scheduled_at": when.isoformat(),
    }
    if professional_id == "alice":
        body["professional_id"] = str(salon.professional.id)
    elif professional_id is not None:
        body["professional_id"] = str(professional_id)
    return body


def _seed(db, salon, when, user=None):
    return booking_service.create_booking(
        db, salon.caller(user or salon.client), salon.branch.id, salon.service.id,
        salon.professional.id, when,
    )


# =============================================================================
# Availability
# =============================================================================

class TestAvailabilityEndpoint:
    async def test_anonymous_availability(self, client, salon, monday):
        response = await client.get(
            f"{_base(salon)}/availability",
            params={
                "branch_id": str(salon.branch.id),
                "service_id": str(salon.service.id),
                "date": monday.isoformat(),
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["date"] == monday.isoformat()
        assert data["branch"]["name"] == "Downtown"
        assert data["service"]["duration_minutes"] == 60
        assert data["timezone"] == "UTC"
        slots = {s["time"]: s for s in data["slots"]}
        assert slots["09:00"]["available"] is True
        assert slots["09:00"]["professional_id"] == str(salon.professional.id)
        assert slots["12:00"]["available"] is False

    async def test_bad_date_is_400(self, client, salon):
        response = await client.get(
            f"{_base(salon)}/availability",
            params={
                "branch_id": str(salon.branch.id),
                "service_id": str(salon.service.id),
                "date": "2030-02-30",
            },
        )

        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_date"

    async def test_signed_in_caller_sees_own_bookings(self, db, user_client, salon, monday):
        _seed(db, salon, at(monday, "10:00"))

        response = await user_client.get(
            f"{_base(salon)}/availability",
            params={
                "branch_id": str(salon.branch.id),
                "service_id": str(salon.service.id),
                "date": monday.isoformat(),
            },
        )

        slots = {s["time"]: s for s in response.json()["slots"]}
        assert slots["10:00"]["available"] is False

    async def test_unusable_cookie_degrades_to_anonymous(
        self, client, salon, other_salon, monday
    ):
        params = {
            "branch_id": str(salon.branch.id),
            "service_id": str(salon.service.id),
            "date": monday.isoformat(),
        }

        client.cookies.set("booking_session", "not-a-jwt")
        garbage = await client.get(f"{_base(salon)}/availability", params=params)

        client.cookies.clear()
        client.cookies.update(
            session_cookie(other_salon, other_salon.client, UserRole.CLIENT)
        )
        foreign = await client.get(f"{_base(salon)}/availability", params=params)

        assert garbage.status_code == 200
        assert foreign.status_code == 200
        assert {s["time"]: s for s in foreign.json()["slots"]}["09:00"]["available"] is True

    async def test_unknown_tenant_is_404(self, client, salon, monday):
        response = await client.get(
            "/salon/nobody/availability",
            params={
                "branch_id": str(salon.branch.id),
                "service_id": str(salon.service.id),
                "date": monday.isoformat(),
            },
        )

        assert response.status_code == 404


# =============================================================================
# Create
# =============================================================================

class TestCreateEndpoint:
    async def test_create_returns_full_booking(self, user_client, salon, monday):
        response = await user_client.post(
            f"{_base(salon)}/bookings", json=_create_body(salon, at(monday, "10:00"))
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PENDING"
        assert data["total_price"] == "25.00"
        assert data["currency"] == "EUR"
        assert data["duration_minutes"] == 60
        assert data["professional_name"] == "Alice"
        assert data["service_name"] == "Haircut"
        assert data["user_name"] == "Carol"
        assert data["display_id"].startswith("BK-")
        assert data["confirmation_token"]

    async def test_auto_assignment(self, user_client, salon, second_professional, monday):
        response = await user_client.post(
            f"{_base(salon)}/bookings",
            json=_create_body(salon, at(monday, "12:00"), professional_id=None),
        )

        assert response.status_code == 201
        assert response.json()["professional_id"] == str(second_professional.id)

    async def test_conflict_is_409_with_reason(self, db, user_client, salon, monday):
        _seed(db, salon, at(monday, "10:00"), user=salon.other_client)

        response = await user_client.post(
            f"{_base(salon)}/bookings", json=_create_body(salon, at(monday, "10:30"))
        )

        assert response.status_code == 409
        assert response.json() == {
            "detail": "Professional is not available at the requested time",
            "reason": "professional_unavailable",
        }

    async def test_off_grid_is_400(self, user_client, salon, monday):
        response = await user_client.post(
            f"{_base(salon)}/bookings", json=_create_body(salon, at(monday, "10:05"))
        )

        assert response.status_code == 400
        assert response.json()["reason"] == "off_grid"

    async def test_requires_session(self, client, salon, monday):
        response = await client.post(
            f"{_base(salon)}/bookings",
            json=_create_body(salon, at(monday, "10:00")),
            headers={"X-Requested-With": "XMLHttpRequest"},
        )

        assert response.status_code == 401

    async def test_requires_csrf_header(self, db, salon, monday):
        app.dependency_overrides[get_db] = lambda: db
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=session_cookie(salon, salon.client, UserRole.CLIENT),
        ) as c:
            response = await c.post(
                f"{_base(salon)}/bookings", json=_create_body(salon, at(monday, "10:00"))
            )
        app.dependency_overrides.clear()

        assert response.status_code == 403

    async def test_session_from_other_tenant_is_rejected(
        self, client, salon, other_salon, monday
    ):
        client.cookies.update(
            session_cookie(salon, other_salon.client, UserRole.CLIENT)
        )

        response = await client.post(
            f"{_base(salon)}/bookings",
            json=_create_body(salon, at(monday, "10:00")),
            headers={"X-Requested-With": "XMLHttpRequest"},
        )

        assert response.status_code == 403

    async def test_garbage_cookie_is_401(self, client, salon):
        client.cookies.set("booking_session", "not-a-jwt")

        response = await client.get(f"{_base(salon)}/bookings/my")

        assert response.status_code == 401

    async def test_token_without_tenant_claim_is_401(self, client, salon):
        token = jwt.encode(
            {"sub": str(salon.client.id), "role": "CLIENT"},
            settings.JWT_SECRET,
            algorithm="HS256",
        )
        client.cookies.set("booking_session", token)

        response = await client.get(f"{_base(salon)}/bookings/my")

        assert response.status_code == 401


# =============================================================================
# Read / List
# =============================================================================

class TestReadEndpoints:
    async def test_owner_can_read(self, db, user_client, salon, monday):
        booking = _seed(db, salon, at(monday, "10:00"))

        response = await user_client.get(f"{_base(salon)}/bookings/{booking.id}")

        assert response.status_code == 200
        assert response.json()["id"] == str(booking.id)

    async def test_other_client_is_forbidden(self, db, user_client, salon, monday):
        booking = _seed(db, salon, at(monday, "10:00"), user=salon.other_client)

        response = await user_client.get(f"{_base(salon)}/bookings/{booking.id}")

        assert response.status_code == 403
        assert response.json()["reason"] == "not_owner"

    async def test_unknown_booking_is_404(self, user_client, salon):
        response = await user_client.get(f"{_base(salon)}/bookings/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["reason"] == "booking_not_found"

    async def test_my_bookings(self, db, user_client, salon, monday):
        _seed(db, salon, at(monday, "10:00"))
        _seed(db, salon, at(monday, "14:00"), user=salon.other_client)

        response = await user_client.get(f"{_base(salon)}/bookings/my")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["limit"] == 50

    async def test_admin_lists_all(self, db, admin_client, salon, monday):
        _seed(db, salon, at(monday, "10:00"))
        _seed(db, salon, at(monday, "14:00"), user=salon.other_client)

        response = await admin_client.get(f"{_base(salon)}/bookings")

        assert response.status_code == 200
        assert response.json()["total"] == 2

    async def test_client_cannot_list_all(self, user_client, salon):
        response = await user_client.get(f"{_base(salon)}/bookings")

        assert response.status_code == 403


# =============================================================================
# Update / Cancel
# =============================================================================

class TestUpdateEndpoint:
    async def test_client_reschedules(self, db, user_client, salon, monday):
        booking = _seed(db, salon, at(monday, "10:00"))

        response = await user_client.patch(
            f"{_base(salon)}/bookings/{booking.id}",
            json={"scheduled_at": at(monday, "14:00").isoformat()},
        )

        assert response.status_code == 200
        assert response.json()["professional_id"] == str(salon.professional.id)
        assert response.json()["updated_at"] is not None

    async def test_client_cannot_set_status(self, db, user_client, salon, monday):
        booking = _seed(db, salon, at(monday, "10:00"))

        response = await user_client.patch(
            f"{_base(salon)}/bookings/{booking.id}", json={"status": "CONFIRMED"}
        )

        assert response.status_code == 403
        assert response.json()["reason"] == "status_change_not_allowed"

    async def test_admin_confirms(self, db, admin_client, salon, monday):
        booking = _seed(db, salon, at(monday, "10:00"))

        response = await admin_client.patch(
            f"{_base(salon)}/bookings/{booking.id}", json={"status": "CONFIRMED"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "CONFIRMED"

    async def test_null_professional_reassigns(
        self, db, user_client, salon, second_professional, monday
    ):
        booking = _seed(db, salon, at(monday, "10:00"))

        response = await user_client.patch(
            f"{_base(salon)}/bookings/{booking.id}",
            json={"scheduled_at": at(monday, "12:00").isoformat(), "professional_id": None},
        )

        assert response.status_code == 200
        assert response.json()["professional_id"] == str(second_professional.id)

    async def test_null_status_is_rejected(self, db, admin_client, salon, monday):
        booking = _seed(db, salon, at(monday, "10:00"))

        response = await admin_client.patch(
            f"{_base(salon)}/bookings/{booking.id}", json={"status": None}
        )

        assert response.status_code == 422

    async def test_cancel(self, db, user_client, salon, monday):
        booking = _seed(db, salon, at(monday, "10:00"))

        response = await user_client.delete(f"{_base(salon)}/bookings/{booking.id}")
        assert response.status_code == 204

        again = await user_client.delete(f"{_base(salon)}/bookings/{booking.id}")
        assert again.status_code == 409
        assert again.json()["reason"] == "already_cancelled"


# =============================================================================
# Token Actions
# =============================================================================

class TestTokenEndpoints:
    async def test_lookup_confirm_cancel(self, db, client, salon, monday):
        booking = _seed(db, salon, at(monday, "10:00"))
        token = booking.confirmation_token

        found = await client.get(f"{_base(salon)}/bookings/token/{token}")
        assert found.status_code == 200
        assert found.json()["id"] == str(booking.id)

        confirmed = await client.post(
            f"{_base(salon)}/bookings/confirm", json={"token": token}
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "CONFIRMED"

        twice = await client.post(f"{_base(salon)}/bookings/confirm", json={"token": token})
        assert twice.status_code == 409
        assert twice.json()["reason"] == "already_confirmed"

        cancelled = await client.delete(f"{_base(salon)}/bookings/cancel/{token}")
        assert cancelled.status_code == 204

    async def test_token_is_tenant_scoped(self, db, client, salon, other_salon, monday):
        booking = _seed(db, salon, at(monday, "10:00"))

        response = await client.get(
            f"/salon/globex/bookings/token/{booking.confirmation_token}"
        )

        assert response.status_code == 404

    async def test_unknown_token(self, client, salon):
        response = await client.post(
            f"{_base(salon)}/bookings/confirm", json={"token": "nope"}
        )

        assert response.status_code == 404


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
