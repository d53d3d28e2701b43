from .user import User, UserRole
from .course import Course, CourseLevel
from .booking import Booking, BookingStatus, PaymentStatus, BookingSource
from .payment_event import PaymentEvent, EventOutcome
