import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..core.errors import ErrorKind, Ok, Result, fail
from ..db import models, schemas
from .booking_service import (
    STORE_UNAVAILABLE_ERRORS,
    count_confirmed,
    normalize_slot,
    parse_slot,
    utc_now,
)

logger = logging.getLogger(__name__)


def check_availability(
    db: Session,
    course_id: int,
    slot_at: datetime | str | None,
    now: datetime | None = None,
) -> Result[schemas.Availability]:
    """Soft capacity check for one course slot.

    Only CONFIRMED bookings are counted. The answer is advisory; the webhook
    reconciler repeats the count under a row lock before confirming anything.
    """
    try:
        course = db.get(models.Course, course_id)
        if course is None or not course.is_active:
            return fail(ErrorKind.not_found, f"Course {course_id} not found")
        try:
            slot = parse_slot(slot_at)
        except ValueError:
            return fail(ErrorKind.validation, "slot_at must be an ISO 8601 datetime")
        if slot <= normalize_slot(now or utc_now()):
            return fail(ErrorKind.validation, "slot_at must be in the future", slot_at=slot.isoformat())
        confirmed = count_confirmed(db, course.id, slot)
    except STORE_UNAVAILABLE_ERRORS as exc:
        logger.warning("Booking store unavailable during availability check", extra={"course_id": course_id})
        return fail(ErrorKind.service_unavailable, "Booking store unavailable", error=type(exc).__name__)
    return Ok(
        schemas.Availability(
            course_id=course.id,
            slot_at=slot,
            capacity=course.capacity,
            confirmed_count=confirmed,
            remaining=max(course.capacity - confirmed, 0),
            has_capacity=confirmed < course.capacity,
        )
    )
