"""
Payment reconciliation against PayPal capture notifications.

CORRELATION
===========

A capture notification does not reliably carry one key that identifies the
booking it pays for, so the target is resolved by trying, in order:

  1. A Payment with the same provider transaction id (`resource.id`)
  2. A Payment with the client-generated order id the checkout put in
     `resource.invoice_id` (prefix "order_"); the real transaction id is then
     written onto that Payment
  3. The booking named by `resource.custom_id` (event id and user id)
  4. Nothing: a Payment is created from the payload alone (source "webhook")
     so the money is never dropped and can be matched by hand later

IDEMPOTENCY
===========

Notifications arrive duplicated and out of order. Only the Payment write is
required and committed on its own; booking, event and user updates run as
side effects afterwards, each guarded by a "has this already happened" check
(user already an attendee, event already in eventsBooked), so a redelivered
COMPLETED event changes nothing the second time. If any of those updates
fails, the webhook log entry is marked failed and admin replay runs the whole
delivery again.

Refunds, reversals and denials update the payment status only. They do not
give the spot back; that stays an administrative decision.
"""

import json
from functools import partial
from typing import Any, Mapping, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.config import get_settings
from huntbook.core.logging import get_logger
from huntbook.core.metrics import record_correlation, record_webhook_event
from huntbook.models.booking import BOOKING_CANCELLED, BOOKING_CONFIRMED, BOOKING_PAYMENT_PENDING, Booking
from huntbook.models.payment import (
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_REFUNDED,
    PAYMENT_REVERSED,
    Payment,
)
from huntbook.models.webhook_log import WebhookLog
from huntbook.repositories import (
    BookingRepository,
    EventRepository,
    PaymentRepository,
    UserRepository,
    WebhookLogRepository,
)
from huntbook.schemas.payment import (
    ClientPaymentCreate,
    PaymentDetails,
    ReconcileOutcome,
    ReplayResponse,
    WebhookEnvelope,
)
from huntbook.services.cache_service import invalidate_event_cache
from huntbook.services.side_effects import SideEffects
from huntbook.services.webhook_verification import VERIFIED, verify_webhook_signature

logger = get_logger(__name__)

VALIDATION_EVENT = "VALIDATION"
EVENT_COMPLETED = "PAYMENT.CAPTURE.COMPLETED"
FAILURE_STATUSES = {
    "PAYMENT.CAPTURE.DENIED": PAYMENT_FAILED,
    "PAYMENT.CAPTURE.REVERSED": PAYMENT_REVERSED,
    "PAYMENT.CAPTURE.REFUNDED": PAYMENT_REFUNDED,
}


def summarize_webhook_body(body: Any) -> dict:
    """The handful of fields worth keeping next to a payment record."""
    if not isinstance(body, dict):
        return {"type": type(body).__name__}

    resource = body.get("resource") or {}
    summary = {
        "event_type": body.get("event_type"),
        "id": body.get("id"),
        "resource_type": body.get("resource_type"),
        "resource_id": resource.get("id"),
        "create_time": body.get("create_time"),
    }
    for key in ("status", "amount", "custom_id", "invoice_id"):
        if resource.get(key):
            summary[key] = resource[key]
    return summary


def extract_order_id(invoice_id: Optional[str]) -> Optional[str]:
    prefix = get_settings().ORDER_ID_PREFIX
    if invoice_id and str(invoice_id).startswith(prefix):
        return str(invoice_id)
    return None


def parse_custom_id(custom_id: Optional[str]) -> tuple[Optional[int], Optional[str]]:
    """
    (event_id, user_id) from checkout metadata.

    Accepts '{"eventId": 12, "userId": "abc"}' or "12:abc".
    """
    if not custom_id:
        return None, None

    try:
        data = json.loads(custom_id)
    except ValueError:
        data = None

    if isinstance(data, dict):
        event_id, user_id = data.get("eventId"), data.get("userId")
    else:
        event_id, sep, user_id = str(custom_id).partition(":")
        if not sep:
            return None, None

    try:
        event_id = int(event_id) if event_id not in (None, "") else None
    except (TypeError, ValueError):
        event_id = None
    return event_id, (str(user_id) if user_id else None)


def _resource_amount(resource: dict) -> tuple[float, str]:
    amount = resource.get("amount")
    currency = get_settings().DEFAULT_CURRENCY
    if not isinstance(amount, dict):
        return 0.0, currency
    try:
        value = float(amount.get("value") or 0)
    except (TypeError, ValueError):
        value = 0.0
    return value, amount.get("currency_code") or currency


async def record_payment_details(
    db: AsyncSession,
    details: PaymentDetails,
    user_id: Optional[str],
    event_id: Optional[int],
    booking_id: Optional[int] = None,
    source: str = "client",
) -> Payment:
    """
    Find-or-create the Payment for client-reported details. Flushes, never commits.

    A status already set by a webhook is not overwritten by what the client
    reports.
    """
    payments = PaymentRepository(db)
    values = {
        "payer_id": details.payer_id,
        "payer_email": details.payer_email,
        "amount": details.amount or 0,
        "currency": details.currency or get_settings().DEFAULT_CURRENCY,
        "full_details": details.model_dump(exclude_none=True),
        "event_id": event_id,
        "user_id": user_id,
    }
    if booking_id is not None:
        values["booking_id"] = booking_id
    reported_status = (details.status or PAYMENT_PENDING).upper()

    payment = await payments.find_by_payment_id(details.payment_id)
    if payment is None:
        payment = await payments.find_by_order_id(details.order_id)

    if payment is None:
        try:
            async with db.begin_nested():
                payment = await payments.add(
                    Payment(
                        payment_id=details.payment_id,
                        order_id=details.order_id,
                        status=reported_status,
                        source=source,
                        **values,
                    )
                )
            logger.info("payment_recorded", payment_pk=payment.id, payment_id=details.payment_id, source=source)
            return payment
        except IntegrityError:
            # A webhook created it between our read and insert
            payment = await payments.find_by_payment_id(details.payment_id)
            if payment is None:
                raise

    if not payment.webhook_details:
        values["status"] = reported_status
    if details.payment_id and not payment.payment_id:
        values["payment_id"] = details.payment_id
    if details.order_id and not payment.order_id:
        values["order_id"] = details.order_id
    await payments.update(payment, **values)
    logger.info("payment_updated", payment_pk=payment.id, payment_id=payment.payment_id, source=source)
    return payment


class PaymentReconciler:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.payments = PaymentRepository(db)
        self.bookings = BookingRepository(db)
        self.events = EventRepository(db)
        self.users = UserRepository(db)
        self.webhooks = WebhookLogRepository(db)

    # Provider events

    async def apply_payment_event(self, event_type: str, payload: dict) -> ReconcileOutcome:
        if event_type == EVENT_COMPLETED:
            return await self._apply(event_type, payload, PAYMENT_COMPLETED)
        if event_type in FAILURE_STATUSES:
            return await self._apply(event_type, payload, FAILURE_STATUSES[event_type])

        logger.info("webhook_event_ignored", event_type=event_type)
        return ReconcileOutcome(outcome="ignored", event_type=event_type)

    async def _apply(self, event_type: str, payload: dict, target_status: str) -> ReconcileOutcome:
        envelope = WebhookEnvelope.model_validate(payload)
        resource = envelope.resource
        transaction_id = resource.get("id")
        order_id = extract_order_id(resource.get("invoice_id"))
        summary = summarize_webhook_body(payload)

        payment, matched_by = await self._correlate_payment(transaction_id, order_id)
        if payment is not None:
            values = {"status": target_status, "webhook_details": summary}
            if transaction_id and payment.payment_id != transaction_id:
                values["payment_id"] = transaction_id
            await self.payments.update(payment, **values)
            booking = await self._linked_booking(payment)
        else:
            booking, matched_by = await self._correlate_booking(resource.get("custom_id"))
            payment = await self._create_from_webhook(
                resource, transaction_id, order_id, target_status, summary, booking
            )

        await self.db.commit()
        record_correlation(matched_by)

        payment_pk = payment.id
        booking_id = booking.id if booking is not None else None
        logger.info(
            "payment_correlated",
            event_type=event_type,
            transaction_id=transaction_id,
            order_id=order_id,
            matched_by=matched_by,
            payment_pk=payment_pk,
            booking_id=booking_id,
            status=target_status,
        )

        failed = []
        if booking_id is not None:
            effects = SideEffects(self.db)
            self._queue_booking_updates(effects, booking_id, target_status)
            failed = await effects.run()

        return ReconcileOutcome(
            outcome="processed",
            event_type=event_type,
            matched_by=matched_by,
            payment_pk=payment_pk,
            booking_id=booking_id,
            failed_effects=failed,
        )

    async def _correlate_payment(
        self, transaction_id: Optional[str], order_id: Optional[str]
    ) -> tuple[Optional[Payment], Optional[str]]:
        payment = await self.payments.find_by_payment_id(transaction_id)
        if payment is not None:
            return payment, "payment_id"
        if order_id:
            payment = await self.payments.find_by_order_id(order_id)
            if payment is not None:
                return payment, "order_id"
        return None, None

    async def _correlate_booking(self, custom_id: Optional[str]) -> tuple[Optional[Booking], str]:
        event_id, user_id = parse_custom_id(custom_id)
        if event_id is not None and user_id:
            booking = await self.bookings.find_latest(user_id, event_id)
            if booking is not None:
                return booking, "event_user"
        return None, "orphan"

    async def _linked_booking(self, payment: Payment) -> Optional[Booking]:
        if payment.booking_id:
            booking = await self.bookings.get(payment.booking_id)
            if booking is not None:
                return booking
        if payment.event_id and payment.user_id:
            booking = await self.bookings.find_latest(payment.user_id, payment.event_id)
            if booking is not None:
                await self.payments.update(payment, booking_id=booking.id)
            return booking
        return None

    async def _create_from_webhook(
        self,
        resource: dict,
        transaction_id: Optional[str],
        order_id: Optional[str],
        target_status: str,
        summary: dict,
        booking: Optional[Booking],
    ) -> Payment:
        amount, currency = _resource_amount(resource)
        payer = resource.get("payer") or {}
        try:
            async with self.db.begin_nested():
                return await self.payments.add(
                    Payment(
                        payment_id=transaction_id,
                        order_id=order_id,
                        status=target_status,
                        amount=amount,
                        currency=currency,
                        payer_email=payer.get("email_address"),
                        custom_id=resource.get("custom_id"),
                        source="webhook",
                        event_id=booking.event_id if booking is not None else None,
                        user_id=booking.user_id if booking is not None else None,
                        booking_id=booking.id if booking is not None else None,
                        webhook_details=summary,
                    )
                )
        except IntegrityError:
            # Concurrent redelivery inserted the same transaction first
            payment = await self.payments.find_by_payment_id(transaction_id)
            if payment is None:
                raise
            return await self.payments.update(payment, status=target_status, webhook_details=summary)

    def _queue_booking_updates(self, effects: SideEffects, booking_id: int, payment_status: str) -> None:
        effects.add("booking_payment_status", partial(self._update_booking_payment, booking_id, payment_status))
        if payment_status == PAYMENT_COMPLETED:
            effects.add("event_attendance", partial(self._add_attendee, booking_id))
            effects.add("user_events_booked", partial(self._add_user_event, booking_id))
        effects.add("listing_cache", invalidate_event_cache)

    async def _update_booking_payment(self, booking_id: int, payment_status: str) -> None:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            return
        values = {"payment_status": payment_status}
        if payment_status == PAYMENT_COMPLETED and booking.status == BOOKING_PAYMENT_PENDING:
            values["status"] = BOOKING_CONFIRMED
        await self.bookings.update(booking, **values)
        logger.info("booking_payment_updated", booking_id=booking_id, **values)

    async def _add_attendee(self, booking_id: int) -> None:
        booking = await self.bookings.get(booking_id)
        if booking is None or booking.status == BOOKING_CANCELLED:
            return
        event_id, user_id = booking.event_id, booking.user_id

        for attempt in range(1, get_settings().BOOKING_MAX_RETRIES + 1):
            event = await self.events.get(event_id, refresh=True)
            if event is None:
                return
            if user_id in (event.attendees or []):
                # Already applied by an earlier delivery
                if await self.events.remove_pending_booking(event, booking_id):
                    return
            elif await self.events.claim_spot(event, user_id, booking_id=booking_id, require_capacity=False):
                logger.info("attendee_added", event_id=event_id, user_id=user_id, spots_left=event.spots_left)
                return
            logger.info("attendance_retry", event_id=event_id, attempt=attempt, reason="version_conflict")
            await self.db.rollback()

        raise RuntimeError(f"event {event_id} changed concurrently on every attempt")

    async def _add_user_event(self, booking_id: int) -> None:
        booking = await self.bookings.get(booking_id)
        if booking is None or booking.status == BOOKING_CANCELLED:
            return
        user = await self.users.get(booking.user_id)
        if user is None:
            return
        await self.users.add_event_booked(user, booking.event_id)
        await self.users.remove_pending_booking(user, booking_id)

    # Webhook intake

    async def receive_webhook(self, body: dict, headers: Mapping[str, str]) -> WebhookLog:
        """
        Log a provider envelope, verify it and apply it.

        Nothing raised while applying escapes: the failure is written to the
        log entry, which stays replayable.
        """
        event_type = body.get("event_type") or "unknown"
        verification = await verify_webhook_signature(headers, body)

        entry = await self.webhooks.add(
            WebhookLog(
                provider="paypal",
                event_id=body.get("id"),
                event_type=event_type,
                resource_type=body.get("resource_type"),
                summary=summarize_webhook_body(body),
                payload=body,
                headers={k.lower(): v for k, v in headers.items() if k.lower().startswith("paypal-")},
                verification=verification,
            )
        )
        await self.db.commit()
        log_id = entry.id
        logger.info(
            "webhook_received",
            log_id=log_id,
            event_type=event_type,
            provider_event_id=body.get("id"),
            verification=verification,
        )

        if verification != VERIFIED:
            if get_settings().PAYPAL_ENFORCE_WEBHOOK_SIGNATURE:
                await self.webhooks.mark(entry, "rejected", error=f"signature verification {verification}")
                await self.db.commit()
                record_webhook_event(event_type, "rejected")
                logger.warning("webhook_rejected", log_id=log_id, verification=verification)
                return entry
            logger.warning("webhook_unverified_accepted", log_id=log_id, verification=verification)

        return await self._process_logged(log_id)

    async def _process_logged(self, log_id: int) -> WebhookLog:
        entry = await self.webhooks.get(log_id)
        event_type, payload = entry.event_type, entry.payload

        try:
            outcome = await self.apply_payment_event(event_type, payload)
        except Exception as e:
            await self.db.rollback()
            entry = await self.webhooks.get(log_id)
            await self.webhooks.mark(entry, "failed", error=str(e))
            await self.db.commit()
            record_webhook_event(event_type, "failed")
            logger.error("webhook_processing_failed", log_id=log_id, event_type=event_type, error=str(e), exc_info=True)
            return entry

        entry = await self.webhooks.get(log_id)
        if outcome.failed_effects:
            # Payment is stored; the follow-up updates are idempotent, so the
            # whole delivery is left for replay
            error = "side effects failed: " + ", ".join(outcome.failed_effects)
            await self.webhooks.mark(entry, "failed", error=error)
            await self.db.commit()
            record_webhook_event(event_type, "failed")
            logger.error(
                "webhook_side_effects_failed",
                log_id=log_id,
                event_type=event_type,
                effects=outcome.failed_effects,
            )
            return entry

        await self.webhooks.mark(entry, outcome.outcome)
        await self.db.commit()
        record_webhook_event(event_type, outcome.outcome)
        return entry

    async def replay_unprocessed_webhooks(self, limit: int = 50) -> ReplayResponse:
        """Re-apply logged deliveries whose processing failed."""
        log_ids = [entry.id for entry in await self.webhooks.list_failed(limit)]
        succeeded = 0
        for log_id in log_ids:
            entry = await self._process_logged(log_id)
            if entry.processed:
                succeeded += 1

        logger.info("webhooks_replayed", replayed=len(log_ids), succeeded=succeeded)
        return ReplayResponse(replayed=len(log_ids), succeeded=succeeded, failed=len(log_ids) - succeeded)

    # Client-side approval

    async def record_client_payment(self, user_id: str, data: ClientPaymentCreate) -> Payment:
        """
        Store what the client reports after provider approval.

        If the payment is already COMPLETED (the webhook may have arrived first)
        the linked booking is brought up to date the same way a webhook would.
        """
        if await self.events.get(data.event_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

        if data.booking_id is not None:
            booking = await self.bookings.get(data.booking_id)
            if booking is None or booking.user_id != user_id or booking.event_id != data.event_id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
        else:
            booking = await self.bookings.find_active(user_id, data.event_id)
        booking_id = booking.id if booking is not None else None

        payment = await record_payment_details(
            self.db, data, user_id=user_id, event_id=data.event_id, booking_id=booking_id
        )
        await self.db.commit()
        payment_pk, payment_status = payment.id, payment.status

        if booking_id is not None and payment_status == PAYMENT_COMPLETED:
            effects = SideEffects(self.db)
            self._queue_booking_updates(effects, booking_id, payment_status)
            await effects.run()

        return await self.payments.get(payment_pk)
