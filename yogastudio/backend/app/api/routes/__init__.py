from . import (
    auth,
    courses,
    checkout,
    payments,
    bookings,
    misc,
)

__all__ = [
    "auth",
    "courses",
    "checkout",
    "payments",
    "bookings",
    "misc",
]
