"""Common application-wide constants."""

# Marker embedded in checkout metadata; webhooks without it are rejected
BOOKING_TYPE_COURSE = "course_booking"

# Largest value an INTEGER primary key column can hold
MAX_ROW_ID = 2**31 - 1

CHECKOUT_COMPLETED = "checkout.session.completed"
# Delayed payment methods confirm with this once the money arrives
CHECKOUT_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
CHECKOUT_EXPIRED = "checkout.session.expired"
CHECKOUT_ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"

CONFIRMING_EVENTS = frozenset({CHECKOUT_COMPLETED, CHECKOUT_ASYNC_PAYMENT_SUCCEEDED})
NON_MUTATING_EVENTS = frozenset(
    {CHECKOUT_EXPIRED, CHECKOUT_ASYNC_PAYMENT_FAILED, PAYMENT_INTENT_FAILED}
)


__all__ = [
    "BOOKING_TYPE_COURSE",
    "MAX_ROW_ID",
    "CHECKOUT_COMPLETED",
    "CHECKOUT_ASYNC_PAYMENT_SUCCEEDED",
    "CHECKOUT_EXPIRED",
    "CHECKOUT_ASYNC_PAYMENT_FAILED",
    "PAYMENT_INTENT_FAILED",
    "CONFIRMING_EVENTS",
    "NON_MUTATING_EVENTS",
]
