"""
Payment provider webhook.

Always answers 200. A non-2xx makes PayPal redeliver with backoff for days;
failures are kept in the webhook log instead and replayed from the admin API.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.logging import get_logger
from huntbook.core.metrics import record_webhook_event
from huntbook.db.session import get_db
from huntbook.schemas.payment import WebhookAck
from huntbook.services.payment_service import VALIDATION_EVENT, PaymentReconciler

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/paypal")
async def paypal_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    try:
        body = await request.json()
    except ValueError:
        logger.warning("webhook_body_invalid")
        record_webhook_event("unknown", "rejected")
        return WebhookAck(status="ignored", outcome="invalid_body")

    if not isinstance(body, dict) or not body.get("event_type"):
        logger.warning("webhook_without_event_type")
        record_webhook_event("unknown", "ignored")
        return WebhookAck(status="ignored", outcome="no_event_type")

    if body["event_type"] == VALIDATION_EVENT:
        logger.info("webhook_validation_request")
        return {"verification_status": "SUCCESS"}

    try:
        entry = await PaymentReconciler(db).receive_webhook(body, request.headers)
    except Exception as e:
        # Logging the delivery itself failed; nothing to replay from
        await db.rollback()
        record_webhook_event(body.get("event_type"), "failed")
        logger.error("webhook_intake_failed", event_type=body.get("event_type"), error=str(e), exc_info=True)
        return WebhookAck(status="acknowledged", outcome="error")

    return WebhookAck(status="acknowledged", outcome=entry.outcome)
