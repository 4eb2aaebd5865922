"""
Pydantic schemas for payment records and provider webhook envelopes.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class PaymentDetails(BaseModel):
    """Payment details the client reports right after provider approval."""

    payment_id: Optional[str] = None
    payer_id: Optional[str] = None
    payer_email: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    order_id: Optional[str] = None
    create_time: Optional[str] = None
    update_time: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return (self.status or "").upper() == "COMPLETED"


class ClientPaymentCreate(PaymentDetails):
    event_id: int
    booking_id: Optional[int] = None


class PaymentResponse(BaseModel):
    id: int
    payment_id: Optional[str]
    order_id: Optional[str]
    amount: float
    currency: str
    status: str
    source: str
    event_id: Optional[int]
    user_id: Optional[str]
    booking_id: Optional[int]
    payer_email: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class WebhookEnvelope(BaseModel):
    """Provider notification; only the fields reconciliation reads are typed."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    event_type: Optional[str] = None
    resource_type: Optional[str] = None
    create_time: Optional[str] = None
    resource: dict[str, Any] = {}


class ReplayResponse(BaseModel):
    replayed: int
    succeeded: int
    failed: int


class ReconcileOutcome(BaseModel):
    """What applying one provider event did."""

    outcome: str  # processed, ignored
    event_type: Optional[str] = None
    matched_by: Optional[str] = None  # payment_id, order_id, event_user, orphan
    payment_pk: Optional[int] = None
    booking_id: Optional[int] = None
    failed_effects: list[str] = []


class WebhookAck(BaseModel):
    status: str
    outcome: Optional[str] = None
