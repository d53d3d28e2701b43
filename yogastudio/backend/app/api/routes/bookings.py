from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _serialize(booking: models.Booking) -> schemas.Booking:
    result = schemas.Booking.model_validate(booking)
    result.slot_at = booking_service.as_utc(booking.slot_at)
    result.course_title = booking.course.title if booking.course else None
    return result


@router.get("", response_model=list[schemas.Booking])
def list_bookings(
    course_id: int | None = None,
    user_id: int | None = None,
    status_filter: models.BookingStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    query = db.query(models.Booking).options(selectinload(models.Booking.course))
    if course_id:
        query = query.filter(models.Booking.course_id == course_id)
    if user_id:
        query = query.filter(models.Booking.user_id == user_id)
    if status_filter:
        query = query.filter(models.Booking.status == status_filter)
    return [_serialize(b) for b in query.order_by(models.Booking.slot_at).all()]


@router.get("/me", response_model=list[schemas.Booking])
def my_bookings(
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    bookings = (
        db.query(models.Booking)
        .options(selectinload(models.Booking.course))
        .filter(models.Booking.user_id == user.id)
        .order_by(models.Booking.slot_at)
        .all()
    )
    return [_serialize(b) for b in bookings]


@router.get("/stats", response_model=schemas.BookingStats)
def booking_stats(
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    now = datetime.now(timezone.utc)
    today_start = datetime(now.year, now.month, now.day, tzinfo=timezone.utc)
    today_end = today_start + timedelta(days=1)

    total = db.query(models.Booking).count()
    confirmed = (
        db.query(models.Booking)
        .filter(models.Booking.status == models.BookingStatus.confirmed)
        .count()
    )
    bookings_today = (
        db.query(models.Booking)
        .filter(
            models.Booking.status.in_(
                [models.BookingStatus.confirmed, models.BookingStatus.pending]
            )
        )
        .filter(models.Booking.slot_at >= today_start)
        .filter(models.Booking.slot_at < today_end)
        .count()
    )
    week_start = now - timedelta(days=7)
    weekly_revenue = (
        db.query(func.coalesce(func.sum(models.Booking.amount), 0))
        .filter(models.Booking.payment_status == models.PaymentStatus.paid)
        .filter(models.Booking.created_at >= week_start)
        .scalar()
    )
    return schemas.BookingStats(
        total=total,
        confirmed=confirmed,
        bookings_today=bookings_today,
        weekly_revenue=float(weekly_revenue or 0),
    )


@router.get("/{booking_id}", response_model=schemas.Booking)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    booking = db.get(models.Booking, booking_id)
    if not booking or (user.role != models.UserRole.admin and booking.user_id != user.id):
        raise HTTPException(status_code=404, detail="Booking not found")
    return _serialize(booking)


@router.post("", response_model=schemas.Booking, status_code=201)
def create_booking(
    payload: schemas.BookingCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    user = db.get(models.User, payload.user_id)
    course = db.get(models.Course, payload.course_id)
    if not user or not course:
        raise HTTPException(status_code=404, detail="User or course not found")
    try:
        booking = booking_service.create_booking(
            db,
            user,
            course,
            payload.slot_at,
            status=payload.status,
            payment_status=payload.payment_status,
            amount=payload.amount,
        )
    except booking_service.BookingError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=str(exc)
        ) from exc
    return _serialize(booking)


@router.post("/{booking_id}/cancel", response_model=schemas.Booking)
def cancel_booking(
    booking_id: int,
    payload: schemas.BookingCancel,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    booking = db.get(models.Booking, booking_id)
    if not booking or (user.role != models.UserRole.admin and booking.user_id != user.id):
        raise HTTPException(status_code=404, detail="Booking not found")
    try:
        booking = booking_service.cancel_booking(db, booking, actor=user.email, reason=payload.reason)
    except booking_service.BookingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    return _serialize(booking)
