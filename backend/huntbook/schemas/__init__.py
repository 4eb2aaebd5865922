from huntbook.schemas.user import UserSync, UserResponse, BookingRequirements
from huntbook.schemas.event import EventCreate, EventResponse, EventListResponse, EventStats
from huntbook.schemas.booking import BookingCreate, BookingResponse, BookingResult, BookingState, Bookability
from huntbook.schemas.payment import PaymentDetails, PaymentResponse, WebhookEnvelope, ReconcileOutcome
from huntbook.schemas.export import ExportReport

__all__ = [
    "UserSync", "UserResponse", "BookingRequirements",
    "EventCreate", "EventResponse", "EventListResponse", "EventStats",
    "BookingCreate", "BookingResponse", "BookingResult", "BookingState", "Bookability",
    "PaymentDetails", "PaymentResponse", "WebhookEnvelope", "ReconcileOutcome",
    "ExportReport",
]
