"""
Data access for the stores the booking and payment flows keep consistent.

Repositories wrap the session handed to them by the caller; they never open
their own, so one unit of work spans whichever repositories it touches.
"""

from .event_repository import EventRepository
from .booking_repository import BookingRepository
from .user_repository import UserRepository
from .payment_repository import PaymentRepository
from .webhook_log_repository import WebhookLogRepository

__all__ = [
    "EventRepository",
    "BookingRepository",
    "UserRepository",
    "PaymentRepository",
    "WebhookLogRepository",
]
