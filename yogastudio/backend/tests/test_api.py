from fastapi.testclient import TestClient

from app.db import models
from app.main import create_app

from factories import (
    PASSWORD,
    add_booking,
    checkout_event,
    create_course,
    create_user,
    future_slot,
    signed,
)


def post_webhook(api, event, secret=None):
    payload, header = signed(event) if secret is None else signed(event, secret)
    return api.post(
        "/api/v1/payments/webhook",
        content=payload,
        headers={"Stripe-Signature": header, "Content-Type": "application/json"},
    )


def test_health(api):
    response = api.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_register_and_login(settings, database, gateway):
    app = create_app(settings=settings, database=database, gateway=gateway)
    with TestClient(app) as client:
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "Marie@Studio.test", "password": "namaste-123", "name": "Marie"},
        )
        assert response.status_code == 201
        assert response.json()["email"] == "marie@studio.test"
        assert response.json()["role"] == "CLIENT"

        duplicate = client.post(
            "/api/v1/auth/register",
            json={"email": "marie@studio.test", "password": "namaste-123"},
        )
        assert duplicate.status_code == 409

        bad = client.post(
            "/api/v1/auth/login", data={"username": "marie@studio.test", "password": "wrong"}
        )
        assert bad.status_code == 400

        login = client.post(
            "/api/v1/auth/login", data={"username": "marie@studio.test", "password": "namaste-123"}
        )
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "marie@studio.test"

        forged = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert forged.status_code == 401


def test_default_admin_can_log_in(settings, database, gateway):
    app = create_app(settings=settings, database=database, gateway=gateway)
    with TestClient(app) as client:
        login = client.post(
            "/api/v1/auth/login", data={"username": "admin@studio.test", "password": PASSWORD}
        )
        assert login.status_code == 200
        assert login.json()["user"]["role"] == "ADMIN"


def test_public_course_listing(api, db_session):
    create_course(db_session, title="Yoga Vinyasa")
    hidden = create_course(db_session, title="Yoga Nidra")
    hidden.is_active = False
    db_session.commit()

    response = api.get("/api/v1/courses")

    assert response.status_code == 200
    assert [c["title"] for c in response.json()] == ["Yoga Vinyasa"]
    assert api.get(f"/api/v1/courses/{hidden.id}").status_code == 404


def test_availability_endpoint(api, db_session):
    course = create_course(db_session, capacity=1)
    slot = future_slot()
    add_booking(db_session, create_user(db_session), course, slot)

    response = api.get(
        f"/api/v1/courses/{course.id}/availability", params={"slot_at": slot.isoformat()}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["has_capacity"] is False
    assert body["confirmed_count"] == 1
    assert body["remaining"] == 0

    assert api.get("/api/v1/courses/999/availability", params={"slot_at": slot.isoformat()}).status_code == 404
    malformed = api.get(f"/api/v1/courses/{course.id}/availability", params={"slot_at": "soon"})
    assert malformed.status_code == 422
    assert malformed.json()["detail"]["type"] == "VALIDATION_ERROR"


def test_checkout_endpoint(api, db_session, gateway, login_as):
    user = create_user(db_session)
    course = create_course(db_session)
    payload = {"course_id": course.id, "slot_at": future_slot().isoformat(), "user_id": user.id}

    assert api.post("/api/v1/checkout/sessions", json=payload).status_code == 401

    login_as(user)
    response = api.post("/api/v1/checkout/sessions", json=payload)

    assert response.status_code == 201
    body = response.json()
    assert body["session_id"] == "cs_test_1"
    assert body["url"] == "https://checkout.test/cs_test_1"
    assert body["currency"] == "EUR"
    assert gateway.calls[0]["amount_minor"] == 2500


def test_checkout_endpoint_errors(api, db_session, gateway, login_as):
    user = create_user(db_session)
    other = create_user(db_session, email="other@studio.test")
    course = create_course(db_session, capacity=1)
    slot = future_slot()
    add_booking(db_session, other, course, slot)
    login_as(user)

    def post(**changes):
        payload = {"course_id": course.id, "slot_at": slot.isoformat(), "user_id": user.id}
        payload.update(changes)
        return api.post("/api/v1/checkout/sessions", json=payload)

    assert post(user_id=other.id).status_code == 403
    assert post(amount=1).status_code == 422
    assert post(course_id=999).status_code == 404
    full = post()
    assert full.status_code == 409
    assert full.json()["detail"]["message"] == "Course is fully booked for this date"
    assert gateway.calls == []


def test_webhook_endpoint_confirms_booking(api, db_session, login_as):
    user = create_user(db_session)
    course = create_course(db_session)
    event = checkout_event(course.id, user.id, future_slot())

    response = post_webhook(api, event)

    assert response.status_code == 200
    assert response.json()["outcome"] == "confirmed"
    booking_id = response.json()["booking_id"]

    again = post_webhook(api, event)
    assert again.status_code == 200
    assert again.json()["outcome"] == "duplicate"

    login_as(user)
    mine = api.get("/api/v1/bookings/me").json()
    assert [b["id"] for b in mine] == [booking_id]
    assert mine[0]["status"] == "CONFIRMED"
    assert mine[0]["payment_status"] == "PAID"
    assert mine[0]["course_title"] == "Yoga Vinyasa"


def test_webhook_endpoint_errors(api, db_session):
    user = create_user(db_session)
    course = create_course(db_session)
    slot = future_slot()

    forged = post_webhook(api, checkout_event(course.id, user.id, slot), secret="whsec_forged")
    assert forged.status_code == 401

    unsigned = api.post("/api/v1/payments/webhook", content=b"{}")
    assert unsigned.status_code == 401

    invalid = post_webhook(
        api, checkout_event(course.id, user.id, slot, event_id="evt_bad", metadata={"course_id": "x"})
    )
    assert invalid.status_code == 422

    expired = post_webhook(
        api, checkout_event(course.id, user.id, slot, event_id="evt_exp", event_type="checkout.session.expired")
    )
    assert expired.status_code == 200
    assert expired.json()["outcome"] == "ignored"
    assert db_session.query(models.Booking).count() == 0


def test_full_course_payment_is_acknowledged_and_flagged(api, db_session, login_as):
    course = create_course(db_session, capacity=1)
    slot = future_slot()
    first = create_user(db_session, email="first@studio.test")
    late = create_user(db_session, email="late@studio.test")
    admin = create_user(db_session, email="boss@studio.test", role=models.UserRole.admin)

    assert post_webhook(api, checkout_event(course.id, first.id, slot, event_id="evt_1")).json()["outcome"] == "confirmed"
    response = post_webhook(api, checkout_event(course.id, late.id, slot, event_id="evt_2"))

    assert response.status_code == 200
    assert response.json()["outcome"] == "course_full"

    login_as(late)
    assert api.get("/api/v1/payments/events").status_code == 403

    login_as(admin)
    flagged = api.get("/api/v1/payments/events", params={"needs_attention": True}).json()
    assert [e["event_id"] for e in flagged] == ["evt_2"]
    assert flagged[0]["outcome"] == "course_full"
    assert len(api.get("/api/v1/payments/events").json()) == 2


def test_booking_management(api, db_session, login_as):
    course = create_course(db_session)
    slot = future_slot()
    client = create_user(db_session)
    stranger = create_user(db_session, email="stranger@studio.test")
    admin = create_user(db_session, email="boss@studio.test", role=models.UserRole.admin)
    booking = post_webhook(api, checkout_event(course.id, client.id, slot)).json()

    login_as(stranger)
    assert api.get(f"/api/v1/bookings/{booking['booking_id']}").status_code == 404
    assert api.post(f"/api/v1/bookings/{booking['booking_id']}/cancel", json={}).status_code == 404
    assert api.get("/api/v1/bookings").status_code == 403

    login_as(admin)
    listed = api.get("/api/v1/bookings", params={"status": "CONFIRMED"}).json()
    assert [b["user_id"] for b in listed] == [client.id]
    stats = api.get("/api/v1/bookings/stats").json()
    assert stats["total"] == 1
    assert stats["confirmed"] == 1
    assert stats["weekly_revenue"] == 25.0

    login_as(client)
    cancelled = api.post(f"/api/v1/bookings/{booking['booking_id']}/cancel", json={"reason": "ill"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    again = api.post(f"/api/v1/bookings/{booking['booking_id']}/cancel", json={})
    assert again.status_code == 400


def test_admin_booking_endpoint(api, db_session, login_as):
    course = create_course(db_session, capacity=1)
    slot = future_slot()
    admin = create_user(db_session, email="boss@studio.test", role=models.UserRole.admin)
    client = create_user(db_session)
    other = create_user(db_session, email="other@studio.test")
    login_as(admin)

    def book(user):
        return api.post(
            "/api/v1/bookings",
            json={
                "user_id": user.id,
                "course_id": course.id,
                "slot_at": slot.isoformat(),
                "status": "CONFIRMED",
                "payment_status": "PAID",
            },
        )

    created = book(client)
    assert created.status_code == 201
    assert created.json()["source"] == "admin"
    assert book(client).status_code == 409
    assert book(other).status_code == 409


def test_course_administration(api, db_session, login_as):
    client = create_user(db_session)
    admin = create_user(db_session, email="boss@studio.test", role=models.UserRole.admin)
    payload = {"title": "Yin Yoga", "price": "18.00", "duration_min": 75, "capacity": 10}

    login_as(client)
    assert api.post("/api/v1/courses", json=payload).status_code == 403

    login_as(admin)
    created = api.post("/api/v1/courses", json=payload)
    assert created.status_code == 201
    course_id = created.json()["id"]
    assert api.post("/api/v1/courses", json=payload).status_code == 409
    assert api.post("/api/v1/courses", json={**payload, "title": "Big", "capacity": 0}).status_code == 422

    updated = api.patch(f"/api/v1/courses/{course_id}", json={"capacity": 12, "is_active": False})
    assert updated.status_code == 200
    assert updated.json()["capacity"] == 12
    assert [c["title"] for c in api.get("/api/v1/courses/all").json()] == ["Yin Yoga"]
    assert api.get("/api/v1/courses").json() == []

    course = db_session.get(models.Course, course_id)
    add_booking(db_session, client, course, future_slot())
    assert api.delete(f"/api/v1/courses/{course_id}").status_code == 409

    empty = create_course(db_session, title="Yoga Doux")
    assert api.delete(f"/api/v1/courses/{empty.id}").status_code == 200
    assert api.get(f"/api/v1/courses/{empty.id}").status_code == 404


def test_capacity_cannot_drop_below_confirmed_bookings(api, db_session, login_as):
    admin = create_user(db_session, email="boss@studio.test", role=models.UserRole.admin)
    course = create_course(db_session, capacity=5)
    slot = future_slot()
    for i in range(3):
        add_booking(db_session, create_user(db_session, email=f"member{i}@studio.test"), course, slot)
    login_as(admin)

    refused = api.patch(f"/api/v1/courses/{course.id}", json={"capacity": 1, "title": "Renamed"})
    assert refused.status_code == 409
    current = api.get(f"/api/v1/courses/{course.id}").json()
    assert current["capacity"] == 5
    assert current["title"] == "Yoga Vinyasa"

    resized = api.patch(f"/api/v1/courses/{course.id}", json={"capacity": 3})
    assert resized.status_code == 200
    assert resized.json()["capacity"] == 3
    availability = api.get(
        f"/api/v1/courses/{course.id}/availability", params={"slot_at": slot.isoformat()}
    )
    assert availability.json()["has_capacity"] is False
