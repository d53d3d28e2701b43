from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Boolean, DateTime, Enum, Integer, JSON, String, func
from sqlalchemy.orm import Mapped, mapped_column
from ..session import Base


class EventOutcome(str, PyEnum):
    confirmed = "confirmed"
    duplicate = "duplicate"
    ignored = "ignored"
    course_full = "course_full"
    invalid = "invalid"


class PaymentEvent(Base):
    """A gateway webhook event that has been processed, keyed by event id."""

    __tablename__ = "payment_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    event_type: Mapped[str] = mapped_column(String(255), nullable=False)
    checkout_session_id: Mapped[str | None] = mapped_column(String(128))
    booking_id: Mapped[int | None] = mapped_column(Integer)
    outcome: Mapped[EventOutcome] = mapped_column(Enum(EventOutcome), nullable=False)
    needs_attention: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    payload: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
