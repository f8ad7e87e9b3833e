"""
Integration tests for the HTTP surface

Drives the ASGI app with signed JWTs; the booking service and database
session dependencies point at the per-test SQLite database.
"""
import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from main import app
from tutorbook.api.auth import AUTH_JWT_ALGORITHM, AUTH_JWT_SECRET
from tutorbook.database import get_db
from tutorbook.services.booking_service import get_booking_service

pytestmark = pytest.mark.integration


def auth_headers(user_id, role):
    token = jwt.encode(
        {
            "sub": str(user_id),
            "user_role": role,
            "exp": datetime.now(timezone.utc) + timedelta(minutes=10),
        },
        AUTH_JWT_SECRET,
        algorithm=AUTH_JWT_ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(booking_service, session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_booking_service] = lambda: booking_service
    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return auth_headers(uuid.uuid4(), "admin")


def student_headers():
    return auth_headers(uuid.uuid4(), "student")


def group_body(service_id):
    return {"service_id": str(service_id), "class_type": "group", "preferred_date": "2025-03-01"}


class TestAuthentication:

    async def test_missing_token_is_401(self, client):
        response = await client.get("/api/v1/bookings")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_001"

    async def test_invalid_token_is_401(self, client):
        response = await client.get("/api/v1/bookings", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_002"

    async def test_student_cannot_assign(self, client, catalog, tutors):
        response = await client.post(
            f"/api/v1/bookings/{uuid.uuid4()}/assign",
            json={"tutor_ids": [str(tutors.x.id)]},
            headers=student_headers(),
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    async def test_admin_cannot_submit_booking(self, client, catalog, admin_headers):
        response = await client.post("/api/v1/bookings", json=group_body(catalog.math.id), headers=admin_headers)
        assert response.status_code == 403


class TestBookingEndpoints:

    async def test_group_flow_over_http(self, client, catalog, tutors, admin_headers):
        group_ids = set()
        for _ in range(3):
            response = await client.post(
                "/api/v1/bookings", json=group_body(catalog.math.id), headers=student_headers()
            )
            assert response.status_code == 201
            group_ids.add(response.json()["data"]["group_session_id"])
        assert len(group_ids) == 1
        group_id = group_ids.pop()

        response = await client.get(f"/api/v1/group-sessions/{group_id}", headers=admin_headers)
        assert response.json()["data"]["status"] == "ready"
        assert response.json()["data"]["current_count"] == 3

        response = await client.post(
            f"/api/v1/group-sessions/{group_id}/assign",
            json={"tutor_ids": [str(tutors.x.id), str(tutors.y.id)]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "approved"
        assert data["tutor_id"] == str(tutors.x.id)
        assert [t["assignment_order"] for t in data["tutors"]] == [1, 2]

    async def test_validation_error_names_field(self, client, catalog):
        body = {
            "service_id": str(catalog.math.id),
            "class_type": "one-on-one",
            "preferred_date": "2025-03-01",
            "preferred_time": "15:00",
            "duration_minutes": 60,
        }
        response = await client.post("/api/v1/bookings", json=body, headers=student_headers())

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["field"] == "curriculum"

    async def test_duplicate_join_is_409_already_joined(self, client, catalog):
        headers = student_headers()
        first = await client.post("/api/v1/bookings", json=group_body(catalog.math.id), headers=headers)
        group_id = first.json()["data"]["group_session_id"]

        response = await client.post(f"/api/v1/group-sessions/{group_id}/join", headers=headers)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_JOINED"

    async def test_six_tutors_is_400(self, client, catalog, tutors, admin_headers):
        body = {
            "service_id": str(catalog.math.id),
            "class_type": "one-on-one",
            "preferred_date": "2025-03-01",
            "preferred_time": "15:00",
            "curriculum": "IB",
            "duration_minutes": 60,
        }
        created = await client.post("/api/v1/bookings", json=body, headers=student_headers())
        booking_id = created.json()["data"]["id"]
        roster = [tutors.x, tutors.y, tutors.z, tutors.t4, tutors.t5, tutors.t6]

        response = await client.post(
            f"/api/v1/bookings/{booking_id}/assign",
            json={"tutor_ids": [str(t.id) for t in roster]},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "tutor_ids"

    async def test_malformed_body_is_422_envelope(self, client):
        response = await client.post("/api/v1/bookings", json={"class_type": "group"}, headers=student_headers())
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_unknown_booking_is_404(self, client, admin_headers):
        response = await client.get(f"/api/v1/bookings/{uuid.uuid4()}", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestCatalogEndpoints:

    async def test_admin_creates_and_everyone_lists_services(self, client, admin_headers):
        response = await client.post(
            "/api/v1/services",
            json={"name": "Biology", "online_available": True, "hourly_rate": "40.00"},
            headers=admin_headers,
        )
        assert response.status_code == 201

        response = await client.get("/api/v1/services", headers=student_headers())
        assert "Biology" in [s["name"] for s in response.json()["data"]]

    async def test_tutor_roster_is_admin_only(self, client, tutors, admin_headers):
        assert (await client.get("/api/v1/tutors", headers=student_headers())).status_code == 403
        response = await client.get("/api/v1/tutors", headers=admin_headers)
        assert len(response.json()["data"]) == 6


class TestHealth:

    async def test_liveness(self, client):
        response = await client.get("/health")
        assert response.json()["status"] == "ok"

    async def test_readiness_checks_database(self, client):
        response = await client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "ok"
