import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from ..config import Settings
from ..core.constants import BOOKING_TYPE_COURSE
from ..core.errors import Err, ErrorKind, Ok, Result, fail
from ..db import models, schemas
from .availability_service import check_availability
from .booking_service import (
    STORE_UNAVAILABLE_ERRORS,
    find_active_booking,
    normalize_slot,
    utc_now,
)
from .payments import BasePaymentGateway, GatewayError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def build_metadata(course_id: int, slot_at: datetime, user_id: int) -> dict[str, str]:
    return {
        "course_id": str(course_id),
        "slot_at": normalize_slot(slot_at).isoformat(),
        "user_id": str(user_id),
        "booking_type": BOOKING_TYPE_COURSE,
    }


def create_checkout(
    db: Session,
    gateway: BasePaymentGateway,
    settings: Settings,
    caller: models.User,
    request: schemas.CheckoutRequest,
    now: datetime | None = None,
) -> Result[schemas.CheckoutSession]:
    """Open a payment session for one course slot.

    No booking row is written here; the booking only exists once the
    gateway reports the payment as completed.
    """
    if caller.id != request.user_id:
        logger.warning(
            "Refused checkout for another user",
            extra={"caller_id": caller.id, "user_id": request.user_id},
        )
        return fail(ErrorKind.forbidden, "You can only book for yourself")

    now = now or utc_now()
    try:
        course = db.get(models.Course, request.course_id)
    except STORE_UNAVAILABLE_ERRORS as exc:
        return fail(ErrorKind.service_unavailable, "Booking store unavailable", error=type(exc).__name__)
    if course is None or not course.is_active:
        return fail(ErrorKind.not_found, f"Course {request.course_id} not found")

    availability = check_availability(db, course.id, request.slot_at, now=now)
    if isinstance(availability, Err):
        return availability

    slot_at = availability.value.slot_at
    try:
        existing = find_active_booking(db, caller.id, course.id, slot_at)
    except STORE_UNAVAILABLE_ERRORS as exc:
        return fail(ErrorKind.service_unavailable, "Booking store unavailable", error=type(exc).__name__)
    if existing is not None:
        return fail(
            ErrorKind.conflict,
            "You already have a booking for this session",
            booking_id=existing.id,
        )

    if not availability.value.has_capacity:
        return fail(
            ErrorKind.conflict,
            "Course is fully booked for this date",
            confirmed=availability.value.confirmed_count,
            capacity=availability.value.capacity,
        )

    amount = Decimal(course.price).quantize(CENT, rounding=ROUND_HALF_UP)
    currency = settings.payment_currency.upper()
    expires_at = now + timedelta(minutes=settings.checkout_session_ttl_min)
    base_url = settings.public_base_url.rstrip("/")
    try:
        session = gateway.create_checkout_session(
            amount_minor=to_minor_units(amount),
            currency=currency,
            description=f"{course.title} - {course.duration_min} min, {slot_at:%Y-%m-%d %H:%M} UTC",
            metadata=build_metadata(course.id, slot_at, caller.id),
            success_url=f"{base_url}/reservation/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base_url}/reservation?cancelled=true",
            expires_at=expires_at,
        )
    except GatewayError as exc:
        return fail(ErrorKind.external_service, "Payment provider error", provider=settings.payment_provider, error=str(exc))

    logger.info(
        "Checkout session created",
        extra={
            "session_id": session.session_id,
            "course_id": course.id,
            "user_id": caller.id,
            "amount": str(amount),
        },
    )
    return Ok(
        schemas.CheckoutSession(
            session_id=session.session_id,
            url=session.url,
            amount=amount,
            currency=currency,
            expires_at=session.expires_at,
        )
    )
