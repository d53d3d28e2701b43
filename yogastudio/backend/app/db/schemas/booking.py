from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from ..models.booking import BookingSource, BookingStatus, PaymentStatus


class BookingBase(BaseModel):
    user_id: int
    course_id: int
    slot_at: datetime


class BookingCreate(BookingBase):
    status: BookingStatus = BookingStatus.pending
    payment_status: PaymentStatus = PaymentStatus.pending
    amount: Decimal | None = Field(default=None, ge=0)


class BookingCancel(BaseModel):
    reason: str | None = None


class Booking(BookingBase):
    id: int
    status: BookingStatus
    payment_status: PaymentStatus
    payment_reference: str | None = None
    amount: Decimal | None = None
    currency: str
    source: BookingSource
    created_at: datetime | None = None
    course_title: str | None = None

    class Config:
        from_attributes = True


class BookingStats(BaseModel):
    total: int
    confirmed: int
    bookings_today: int
    weekly_revenue: float
