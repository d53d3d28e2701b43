from .course import Course, CourseCreate, CourseUpdate
from .booking import Booking, BookingCreate, BookingCancel, BookingStats
from .checkout import Availability, CheckoutRequest, CheckoutSession
from .payment import PaymentEvent, WebhookAck
from .user import User, UserCreate
