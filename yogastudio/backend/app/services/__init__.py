from . import (
    admin,
    availability_service,
    booking_service,
    checkout_service,
    webhook_service,
)

__all__ = [
    "admin",
    "availability_service",
    "booking_service",
    "checkout_service",
    "webhook_service",
]
