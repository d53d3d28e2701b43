from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field

from ...core.constants import MAX_ROW_ID


class Availability(BaseModel):
    course_id: int
    slot_at: datetime
    capacity: int
    confirmed_count: int
    remaining: int
    has_capacity: bool


class CheckoutRequest(BaseModel):
    # No amount field: the price always comes from the course row.
    model_config = ConfigDict(extra="forbid")

    course_id: int = Field(gt=0, le=MAX_ROW_ID)
    slot_at: datetime
    user_id: int = Field(gt=0, le=MAX_ROW_ID)


class CheckoutSession(BaseModel):
    session_id: str
    url: str | None
    amount: Decimal
    currency: str
    expires_at: datetime
