from datetime import datetime, timedelta, timezone
from decimal import Decimal
import json

from app.config import Settings
from app.core import security
from app.db import models
from app.services.payments import BasePaymentGateway, GatewayError, GatewaySession
from app.services.payments.stub import StubGateway, sign_payload

WEBHOOK_SECRET = "whsec_test_secret"

# hashing is slow; every fixture user shares one precomputed hash
PASSWORD = "correct-horse"
PASSWORD_HASH = security.get_password_hash(PASSWORD)


class RecordingGateway(BasePaymentGateway):
    """Gateway double that records sessions and verifies like the stub."""

    def __init__(self, settings: Settings, fail_with: str | None = None) -> None:
        super().__init__(settings)
        self.calls: list[dict] = []
        self.fail_with = fail_with
        self._verifier = StubGateway(settings)

    def create_checkout_session(self, **kwargs) -> GatewaySession:
        self.calls.append(kwargs)
        if self.fail_with:
            raise GatewayError(self.fail_with)
        session_id = f"cs_test_{len(self.calls)}"
        return GatewaySession(
            session_id=session_id,
            url=f"https://checkout.test/{session_id}",
            expires_at=kwargs["expires_at"],
        )

    def verify_webhook(self, payload: bytes, signature: str) -> dict:
        return self._verifier.verify_webhook(payload, signature)


def future_slot(days: int = 3, hour: int = 10) -> datetime:
    base = datetime.now(timezone.utc) + timedelta(days=days)
    return base.replace(hour=hour, minute=0, second=0, microsecond=0)


def create_user(session, email="client@studio.test", role=models.UserRole.client):
    user = models.User(email=email, password_hash=PASSWORD_HASH, role=role)
    session.add(user)
    session.commit()
    return user


def create_course(session, title="Yoga Vinyasa", capacity=15, price="25.00", duration_min=60):
    course = models.Course(
        title=title,
        description="Un style dynamique",
        price=Decimal(price),
        duration_min=duration_min,
        capacity=capacity,
    )
    session.add(course)
    session.commit()
    return course


def add_booking(session, user, course, slot_at, status=models.BookingStatus.confirmed):
    booking = models.Booking(
        user_id=user.id,
        course_id=course.id,
        slot_at=slot_at,
        status=status,
        payment_status=models.PaymentStatus.paid,
        amount=course.price,
    )
    session.add(booking)
    session.commit()
    return booking


def checkout_event(
    course_id,
    user_id,
    slot_at,
    event_id="evt_1",
    event_type="checkout.session.completed",
    amount_total=2500,
    **overrides,
) -> dict:
    metadata = {
        "course_id": str(course_id),
        "user_id": str(user_id),
        "slot_at": slot_at.isoformat() if isinstance(slot_at, datetime) else slot_at,
        "booking_type": "course_booking",
    }
    metadata.update(overrides.pop("metadata", {}))
    session = {
        "id": f"cs_{event_id}",
        "object": "checkout.session",
        "payment_intent": f"pi_{event_id}",
        "payment_status": "paid",
        "amount_total": amount_total,
        "currency": "eur",
        "metadata": metadata,
    }
    session.update(overrides)
    return {"id": event_id, "type": event_type, "data": {"object": session}}


def signed(event: dict, secret: str = WEBHOOK_SECRET) -> tuple[bytes, str]:
    payload = json.dumps(event).encode("utf-8")
    return payload, sign_payload(payload, secret)

