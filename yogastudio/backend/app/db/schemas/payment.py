from datetime import datetime
from pydantic import BaseModel

from ..models.payment_event import EventOutcome


class WebhookAck(BaseModel):
    received: bool = True
    outcome: EventOutcome
    booking_id: int | None = None


class PaymentEvent(BaseModel):
    id: int
    event_id: str
    event_type: str
    checkout_session_id: str | None = None
    booking_id: int | None = None
    outcome: EventOutcome
    needs_attention: bool
    payload: dict | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
