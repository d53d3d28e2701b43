from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from sqlalchemy import (
    CHAR,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class BookingStatus(str, PyEnum):
    pending = "PENDING"
    confirmed = "CONFIRMED"
    cancelled = "CANCELLED"
    completed = "COMPLETED"


class PaymentStatus(str, PyEnum):
    pending = "PENDING"
    paid = "PAID"
    failed = "FAILED"
    refunded = "REFUNDED"


class BookingSource(str, PyEnum):
    checkout = "checkout"
    admin = "admin"


# Enum columns persist member names, hence the lowercase literal.
_CONFIRMED_ONLY = text("status = 'confirmed'")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_booking_course_slot", "course_id", "slot_at"),
        Index(
            "uq_booking_confirmed_user_course_slot",
            "user_id",
            "course_id",
            "slot_at",
            unique=True,
            postgresql_where=_CONFIRMED_ONLY,
            sqlite_where=_CONFIRMED_ONLY,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="RESTRICT"))
    slot_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(Enum(BookingStatus), default=BookingStatus.pending)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.pending
    )
    payment_reference: Mapped[str | None] = mapped_column(String(128))
    checkout_session_id: Mapped[str | None] = mapped_column(String(128), index=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    currency: Mapped[str] = mapped_column(CHAR(3), default="EUR")
    source: Mapped[BookingSource] = mapped_column(Enum(BookingSource), default=BookingSource.admin)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user = relationship("User")
    course = relationship("Course", back_populates="bookings")
