import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from ..db import models
from ..db.models.booking import BookingSource, BookingStatus, PaymentStatus
from ..db.session import transaction

logger = logging.getLogger(__name__)

# Errors meaning the store could not be reached; callers may retry later.
STORE_UNAVAILABLE_ERRORS = (OperationalError, PoolTimeoutError)

ACTIVE_STATUSES = (BookingStatus.pending, BookingStatus.confirmed)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.pending: frozenset({BookingStatus.confirmed, BookingStatus.cancelled}),
    BookingStatus.confirmed: frozenset({BookingStatus.cancelled, BookingStatus.completed}),
    BookingStatus.cancelled: frozenset(),
    BookingStatus.completed: frozenset(),
}


class BookingError(Exception):
    pass


class CourseFullError(BookingError):
    def __init__(self, course_id: int, slot_at: datetime, confirmed: int, capacity: int) -> None:
        super().__init__("Course is fully booked for this date")
        self.course_id = course_id
        self.slot_at = slot_at
        self.confirmed = confirmed
        self.capacity = capacity


class DuplicateBookingError(BookingError):
    def __init__(self, booking: models.Booking) -> None:
        super().__init__("Already booked")
        self.booking = booking


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_slot(value: datetime) -> datetime:
    """Return ``value`` as aware UTC truncated to whole seconds.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


def parse_slot(value: datetime | str | None) -> datetime:
    """Parse and normalise a slot timestamp, raising ``ValueError`` if malformed."""
    if isinstance(value, datetime):
        return normalize_slot(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError("slot_at must be an ISO 8601 datetime")
    return normalize_slot(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def count_confirmed(db: Session, course_id: int, slot_at: datetime) -> int:
    return db.scalar(
        select(func.count(models.Booking.id)).where(
            models.Booking.course_id == course_id,
            models.Booking.slot_at == normalize_slot(slot_at),
            models.Booking.status == BookingStatus.confirmed,
        )
    ) or 0


def find_active_booking(
    db: Session, user_id: int, course_id: int, slot_at: datetime
) -> models.Booking | None:
    return (
        db.execute(
            select(models.Booking)
            .where(
                models.Booking.user_id == user_id,
                models.Booking.course_id == course_id,
                models.Booking.slot_at == normalize_slot(slot_at),
                models.Booking.status.in_(ACTIVE_STATUSES),
            )
            .order_by(models.Booking.id)
        )
        .scalars()
        .first()
    )


def lock_course(db: Session, course_id: int) -> models.Course | None:
    """Load the course row with ``FOR UPDATE``.

    Every confirmation for the course queues behind this lock, so the count
    taken after it sees all previously committed confirmations.
    """
    return db.execute(
        select(models.Course)
        .where(models.Course.id == course_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def max_upcoming_confirmed(db: Session, course_id: int, now: datetime | None = None) -> int:
    """Largest CONFIRMED count among the course's slots that have not started."""
    per_slot = (
        select(func.count(models.Booking.id).label("confirmed"))
        .where(
            models.Booking.course_id == course_id,
            models.Booking.status == BookingStatus.confirmed,
            models.Booking.slot_at >= normalize_slot(now or utc_now()),
        )
        .group_by(models.Booking.slot_at)
        .subquery()
    )
    return db.scalar(select(func.max(per_slot.c.confirmed))) or 0


def resize_course(db: Session, course: models.Course, capacity: int) -> None:
    """Set a new capacity, refusing to drop below any upcoming slot's confirmations.

    Must run inside a transaction that holds the lock from :func:`lock_course`.
    """
    confirmed = max_upcoming_confirmed(db, course.id)
    if capacity < confirmed:
        logger.warning(
            "Refused capacity change",
            extra={"course_id": course.id, "capacity": capacity, "confirmed": confirmed},
        )
        raise BookingError(
            f"Capacity {capacity} is below the {confirmed} confirmed bookings of an upcoming session"
        )
    course.capacity = capacity


def admit_booking(
    db: Session,
    course: models.Course,
    user_id: int,
    slot_at: datetime,
    **fields,
) -> models.Booking:
    """Insert a CONFIRMED booking if the slot still has room.

    Must run inside a transaction that holds the lock from :func:`lock_course`.
    """
    slot_at = normalize_slot(slot_at)
    existing = find_active_booking(db, user_id, course.id, slot_at)
    if existing:
        raise DuplicateBookingError(existing)
    confirmed = count_confirmed(db, course.id, slot_at)
    if confirmed >= course.capacity:
        raise CourseFullError(course.id, slot_at, confirmed, course.capacity)
    booking = models.Booking(
        user_id=user_id,
        course_id=course.id,
        slot_at=slot_at,
        status=BookingStatus.confirmed,
        **fields,
    )
    db.add(booking)
    db.flush()
    return booking


def create_booking(
    db: Session,
    user: models.User,
    course: models.Course,
    slot_at: datetime,
    status: BookingStatus = BookingStatus.pending,
    payment_status: PaymentStatus = PaymentStatus.pending,
    amount: Decimal | None = None,
    currency: str = "EUR",
) -> models.Booking:
    """Create a booking on behalf of an administrator.

    Confirmed bookings go through the same locked capacity check as paid ones.
    """
    slot_at = normalize_slot(slot_at)
    fields = {
        "payment_status": payment_status,
        "amount": amount if amount is not None else course.price,
        "currency": currency.upper(),
        "source": BookingSource.admin,
    }
    try:
        with transaction(db):
            if status == BookingStatus.confirmed:
                locked = lock_course(db, course.id)
                if locked is None:
                    raise BookingError("Course not found")
                booking = admit_booking(db, locked, user.id, slot_at, **fields)
            else:
                if find_active_booking(db, user.id, course.id, slot_at):
                    raise BookingError("Already booked")
                booking = models.Booking(
                    user_id=user.id,
                    course_id=course.id,
                    slot_at=slot_at,
                    status=status,
                    **fields,
                )
                db.add(booking)
    except DuplicateBookingError as exc:
        raise BookingError("Already booked") from exc
    except IntegrityError as exc:
        raise BookingError("Already booked") from exc
    db.refresh(booking)
    logger.info(
        "Admin created booking",
        extra={"booking_id": booking.id, "course_id": course.id, "status": booking.status.value},
    )
    return booking


def change_status(db: Session, booking: models.Booking, new_status: BookingStatus) -> models.Booking:
    if new_status not in ALLOWED_TRANSITIONS[booking.status]:
        logger.warning(
            "Refused booking transition",
            extra={
                "booking_id": booking.id,
                "from_status": booking.status.value,
                "to_status": new_status.value,
            },
        )
        raise BookingError(f"Cannot move booking from {booking.status.value} to {new_status.value}")
    booking.status = new_status
    booking.updated_at = utc_now()
    db.commit()
    db.refresh(booking)
    return booking


def cancel_booking(
    db: Session, booking: models.Booking, actor: str, reason: str | None = None
) -> models.Booking:
    if booking.status not in ACTIVE_STATUSES:
        raise BookingError("Cannot cancel")
    booking = change_status(db, booking, BookingStatus.cancelled)
    logger.info(
        "Booking cancelled",
        extra={"booking_id": booking.id, "actor": actor, "reason": reason},
    )
    if booking.payment_status == PaymentStatus.paid:
        logger.warning(
            "Cancelled booking was paid; refund must be handled manually",
            extra={"booking_id": booking.id, "payment_reference": booking.payment_reference},
        )
    return booking


def complete_past_bookings(db: Session, now: datetime | None = None) -> int:
    """Mark confirmed bookings whose class has ended as completed."""
    now = as_utc(now or utc_now())
    candidates = (
        db.execute(
            select(models.Booking)
            .join(models.Course)
            .where(
                models.Booking.status == BookingStatus.confirmed,
                models.Booking.slot_at < normalize_slot(now),
            )
        )
        .scalars()
        .all()
    )
    completed = 0
    for booking in candidates:
        ends_at = as_utc(booking.slot_at) + timedelta(minutes=booking.course.duration_min or 0)
        if ends_at <= now:
            booking.status = BookingStatus.completed
            booking.updated_at = now
            completed += 1
    db.commit()
    return completed
