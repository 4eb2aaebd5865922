from huntbook.models.user import User
from huntbook.models.event import Event
from huntbook.models.booking import Booking
from huntbook.models.payment import Payment
from huntbook.models.webhook_log import WebhookLog
from huntbook.models.mail import OutboundMail

__all__ = ["User", "Event", "Booking", "Payment", "WebhookLog", "OutboundMail"]
