"""Turns signed gateway notifications into confirmed bookings.

A completed checkout is confirmed only after the capacity count is repeated
under the course row lock. Payments that arrive for a slot that filled up in
the meantime are acknowledged to the gateway, so it stops redelivering, and
recorded as ``course_full`` with ``needs_attention`` set for a manual refund.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.constants import (
    BOOKING_TYPE_COURSE,
    CONFIRMING_EVENTS,
    MAX_ROW_ID,
    NON_MUTATING_EVENTS,
)
from ..core.errors import ErrorKind, Ok, Result, fail
from ..db import models
from ..db.models.booking import BookingSource, PaymentStatus
from ..db.models.payment_event import EventOutcome
from ..db.session import transaction
from . import booking_service
from .payments import (
    BasePaymentGateway,
    WebhookPayloadError,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)


class InvalidBookingMetadata(ValueError):
    pass


@dataclass(frozen=True)
class BookingMetadata:
    course_id: int
    user_id: int
    slot_at: datetime


@dataclass(frozen=True)
class WebhookOutcome:
    outcome: EventOutcome
    event_id: str
    booking_id: int | None = None


def _positive_int(metadata: dict[str, Any], key: str) -> int:
    raw = metadata.get(key)
    if isinstance(raw, bool) or raw is None:
        raise InvalidBookingMetadata(f"{key} is missing")
    try:
        value = int(str(raw).strip())
    except ValueError as exc:
        raise InvalidBookingMetadata(f"{key} is not an integer") from exc
    if value <= 0:
        raise InvalidBookingMetadata(f"{key} must be positive")
    if value > MAX_ROW_ID:
        raise InvalidBookingMetadata(f"{key} is out of range")
    return value


def parse_metadata(metadata: Any) -> BookingMetadata:
    if not isinstance(metadata, dict):
        raise InvalidBookingMetadata("metadata is missing")
    if metadata.get("booking_type") != BOOKING_TYPE_COURSE:
        raise InvalidBookingMetadata("booking_type does not match")
    course_id = _positive_int(metadata, "course_id")
    user_id = _positive_int(metadata, "user_id")
    try:
        slot_at = booking_service.parse_slot(metadata.get("slot_at"))
    except ValueError as exc:
        raise InvalidBookingMetadata("slot_at is not a valid datetime") from exc
    return BookingMetadata(course_id=course_id, user_id=user_id, slot_at=slot_at)


def _session_amount(session: dict[str, Any]) -> tuple[Decimal, str]:
    amount_total = session.get("amount_total")
    currency = session.get("currency")
    if isinstance(amount_total, bool) or not isinstance(amount_total, int) or amount_total < 0:
        raise InvalidBookingMetadata("amount_total is missing")
    if not isinstance(currency, str) or len(currency) != 3:
        raise InvalidBookingMetadata("currency is missing")
    return Decimal(amount_total) / 100, currency.upper()


def _event_recorded(db: Session, event_id: str) -> bool:
    return (
        db.scalar(select(models.PaymentEvent.id).where(models.PaymentEvent.event_id == event_id))
        is not None
    )


def _record_event(
    db: Session,
    event_id: str,
    event_type: str,
    session: dict[str, Any],
    outcome: EventOutcome,
    booking_id: int | None = None,
    needs_attention: bool = False,
) -> EventOutcome:
    """Store the event outside any booking transaction.

    Returns ``duplicate`` when the event id has been stored already.
    """
    try:
        with transaction(db):
            if _event_recorded(db, event_id):
                return EventOutcome.duplicate
            db.add(
                models.PaymentEvent(
                    event_id=event_id,
                    event_type=event_type,
                    checkout_session_id=session.get("id"),
                    booking_id=booking_id,
                    outcome=outcome,
                    needs_attention=needs_attention,
                    payload=session,
                )
            )
    except IntegrityError:
        db.rollback()
        return EventOutcome.duplicate
    return outcome


def reconcile_webhook(
    db: Session,
    gateway: BasePaymentGateway,
    payload: bytes,
    signature: str | None,
) -> Result[WebhookOutcome]:
    if not signature:
        logger.warning("Webhook rejected: missing signature header")
        return fail(ErrorKind.unauthorized, "Missing webhook signature")
    try:
        event = gateway.verify_webhook(payload, signature)
    except WebhookSignatureError:
        logger.warning("Webhook rejected: signature verification failed")
        return fail(ErrorKind.unauthorized, "Webhook signature verification failed")
    except WebhookPayloadError as exc:
        logger.error("Webhook rejected: %s", exc)
        return fail(ErrorKind.validation, "Malformed webhook payload")

    event_id = event.get("id")
    event_type = event.get("type")
    data = event.get("data")
    session = data.get("object") if isinstance(data, dict) else None
    if not isinstance(event_id, str) or not isinstance(event_type, str) or not isinstance(session, dict):
        logger.error("Webhook rejected: event envelope incomplete", extra={"event_id": event_id})
        return fail(ErrorKind.validation, "Malformed webhook event")

    try:
        if event_type in CONFIRMING_EVENTS:
            return _handle_completed(db, event_id, event_type, session)
        return _acknowledge(db, event_id, event_type, session)
    except booking_service.STORE_UNAVAILABLE_ERRORS as exc:
        db.rollback()
        logger.warning(
            "Booking store unavailable while processing webhook",
            extra={"event_id": event_id, "error_type": type(exc).__name__},
        )
        return fail(ErrorKind.service_unavailable, "Booking store unavailable")


def _acknowledge(
    db: Session, event_id: str, event_type: str, session: dict[str, Any]
) -> Result[WebhookOutcome]:
    if event_type in NON_MUTATING_EVENTS:
        logger.info(
            "Checkout did not complete; nothing to reconcile",
            extra={"event_id": event_id, "event_type": event_type, "session_id": session.get("id")},
        )
    else:
        logger.info("Ignoring webhook event", extra={"event_id": event_id, "event_type": event_type})
    outcome = _record_event(db, event_id, event_type, session, EventOutcome.ignored)
    return Ok(WebhookOutcome(outcome=outcome, event_id=event_id))


def _handle_completed(
    db: Session, event_id: str, event_type: str, session: dict[str, Any]
) -> Result[WebhookOutcome]:
    session_id = session.get("id")
    try:
        metadata = parse_metadata(session.get("metadata"))
        amount, currency = _session_amount(session)
    except InvalidBookingMetadata as exc:
        logger.error(
            "Paid checkout session carries invalid booking metadata",
            extra={"event_id": event_id, "session_id": session_id, "reason": str(exc)},
        )
        _record_event(db, event_id, event_type, session, EventOutcome.invalid, needs_attention=True)
        return fail(ErrorKind.validation, "Invalid booking metadata", reason=str(exc))

    if session.get("payment_status") == "unpaid":
        # delayed payment methods confirm later via async_payment_succeeded
        outcome = _record_event(db, event_id, event_type, session, EventOutcome.ignored)
        return Ok(WebhookOutcome(outcome=outcome, event_id=event_id))

    payment_reference = session.get("payment_intent") or session_id
    try:
        with transaction(db):
            if _event_recorded(db, event_id):
                return Ok(WebhookOutcome(outcome=EventOutcome.duplicate, event_id=event_id))
            course = booking_service.lock_course(db, metadata.course_id)
            if course is None:
                raise InvalidBookingMetadata(f"course {metadata.course_id} does not exist")
            booking = booking_service.admit_booking(
                db,
                course,
                metadata.user_id,
                metadata.slot_at,
                payment_status=PaymentStatus.paid,
                payment_reference=payment_reference,
                checkout_session_id=session_id,
                amount=amount,
                currency=currency,
                source=BookingSource.checkout,
            )
            db.add(
                models.PaymentEvent(
                    event_id=event_id,
                    event_type=event_type,
                    checkout_session_id=session_id,
                    booking_id=booking.id,
                    outcome=EventOutcome.confirmed,
                    payload=session,
                )
            )
            booking_id = booking.id
    except booking_service.DuplicateBookingError as exc:
        booking_id = exc.booking.id
        # a different payment for a seat the user already holds was captured twice
        double_charge = payment_reference != exc.booking.payment_reference
        if double_charge:
            logger.error(
                "Second payment captured for an existing booking; manual refund required",
                extra={
                    "event_id": event_id,
                    "booking_id": booking_id,
                    "payment_reference": payment_reference,
                    "booking_payment_reference": exc.booking.payment_reference,
                },
            )
        else:
            logger.info(
                "Booking already exists for paid session",
                extra={"event_id": event_id, "booking_id": booking_id},
            )
        _record_event(
            db,
            event_id,
            event_type,
            session,
            EventOutcome.duplicate,
            booking_id=booking_id,
            needs_attention=double_charge,
        )
        return Ok(WebhookOutcome(outcome=EventOutcome.duplicate, event_id=event_id, booking_id=booking_id))
    except booking_service.CourseFullError as exc:
        logger.error(
            "Payment captured for a full course; manual refund required",
            extra={
                "event_id": event_id,
                "session_id": session_id,
                "course_id": exc.course_id,
                "user_id": metadata.user_id,
                "slot_at": exc.slot_at.isoformat(),
                "capacity": exc.capacity,
                "payment_reference": payment_reference,
            },
        )
        outcome = _record_event(
            db, event_id, event_type, session, EventOutcome.course_full, needs_attention=True
        )
        return Ok(WebhookOutcome(outcome=outcome, event_id=event_id))
    except InvalidBookingMetadata as exc:
        logger.error(
            "Paid checkout session references a missing course",
            extra={"event_id": event_id, "session_id": session_id, "reason": str(exc)},
        )
        _record_event(db, event_id, event_type, session, EventOutcome.invalid, needs_attention=True)
        return fail(ErrorKind.validation, "Invalid booking metadata", reason=str(exc))
    except IntegrityError:
        # a concurrent delivery won the race for the same event or booking
        db.rollback()
        existing = booking_service.find_active_booking(
            db, metadata.user_id, metadata.course_id, metadata.slot_at
        )
        if existing is None and not _event_recorded(db, event_id):
            raise
        logger.info("Concurrent duplicate webhook delivery", extra={"event_id": event_id})
        return Ok(
            WebhookOutcome(
                outcome=EventOutcome.duplicate,
                event_id=event_id,
                booking_id=existing.id if existing else None,
            )
        )

    logger.info(
        "Booking confirmed from payment",
        extra={
            "event_id": event_id,
            "booking_id": booking_id,
            "course_id": metadata.course_id,
            "user_id": metadata.user_id,
        },
    )
    return Ok(WebhookOutcome(outcome=EventOutcome.confirmed, event_id=event_id, booking_id=booking_id))
