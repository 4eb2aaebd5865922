"""
Transactional booking - the primary strategy.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two users try to book the last spot simultaneously.
  Both read spots_left=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  One transaction per attempt, all reads before any write:

  1. Read the event (with its version), the user's active booking and profile
  2. INSERT the booking; the partial unique index on (user_id, event_id)
     for non-cancelled rows rejects a concurrent duplicate
  3. UPDATE events SET spots_left = ..., attendees = ..., version = version + 1
     WHERE id = :event_id AND version = :read_version AND spots_left > 0
  4. If rows_affected == 0 someone else changed the event: roll back the
     whole attempt (booking row included) and retry from step 1
  5. Profile, membership and payment record are written in the same
     transaction, so a failure anywhere leaves nothing behind

Payment-pending bookings do not take a spot; step 3 only records the booking
id in the event's pendingBookings, under the same version check.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.config import get_settings
from huntbook.core.logging import get_logger
from huntbook.core.metrics import booking_retries
from huntbook.models.booking import BOOKING_CONFIRMED
from huntbook.models.user import User
from huntbook.repositories import BookingRepository, EventRepository, UserRepository
from huntbook.schemas.booking import BookingCreate, BookingResult
from huntbook.services import booking_rules
from huntbook.services.interfaces.booking_strategy import BookingStrategy
from huntbook.services.membership_service import update_user_membership
from huntbook.services.payment_service import record_payment_details
from huntbook.services.side_effects import SideEffects

logger = get_logger(__name__)


class TransactionalBooking(BookingStrategy):
    name = "transactional"

    async def reserve(
        self,
        db: AsyncSession,
        user_id: str,
        data: BookingCreate,
        effects: SideEffects,
    ) -> BookingResult:
        events = EventRepository(db)
        bookings = BookingRepository(db)
        users = UserRepository(db)
        max_attempts = get_settings().BOOKING_MAX_RETRIES

        for attempt in range(1, max_attempts + 1):
            # Reads
            event = await events.get(data.event_id, refresh=True)
            verdict = booking_rules.evaluate_bookability(event)
            if event is None:
                return booking_rules.rejected(verdict)

            existing = await bookings.find_active(user_id, event.id)
            if existing is not None:
                return booking_rules.already_booked(existing)

            if not verdict.bookable:
                return booking_rules.rejected(verdict)

            user = await users.get(user_id)
            status, payment_status = booking_rules.resolve_booking_status(event, data.payment_details)

            # Writes
            if user is None:
                try:
                    async with db.begin_nested():
                        user = await users.add(
                            User(id=user_id, email=data.email or None, display_name=data.display_name or None)
                        )
                except IntegrityError:
                    # A concurrent request of the same user created the profile first
                    user = await users.get(user_id)
                    if user is None:
                        raise

            try:
                async with db.begin_nested():
                    booking = await bookings.add(
                        booking_rules.build_booking(event, user_id, data, status, payment_status)
                    )
            except IntegrityError:
                await db.rollback()
                existing = await bookings.find_active(user_id, data.event_id)
                if existing is not None:
                    logger.info("booking_duplicate_rejected", user_id=user_id, event_id=data.event_id)
                    return booking_rules.already_booked(existing)
                raise

            if status == BOOKING_CONFIRMED:
                applied = await events.claim_spot(event, user_id)
            else:
                applied = await events.add_pending_booking(event, booking.id)

            if not applied:
                logger.info(
                    "booking_retry",
                    event_id=data.event_id,
                    user_id=user_id,
                    attempt=attempt,
                    reason="version_conflict",
                )
                booking_retries.inc()
                await db.rollback()
                continue

            if status == BOOKING_CONFIRMED:
                await users.add_event_booked(user, event.id)
            else:
                await users.add_pending_booking(user, booking.id)
            await update_user_membership(db, user, data.personal_details())

            if data.payment_details is not None:
                await record_payment_details(
                    db, data.payment_details, user_id=user_id, event_id=event.id, booking_id=booking.id
                )

            await db.commit()

            logger.info(
                "booking_created",
                booking_id=booking.id,
                user_id=user_id,
                event_id=event.id,
                status=status,
                spots_left=event.spots_left,
                attempt=attempt,
                strategy=self.name,
            )
            return booking_rules.created(booking)

        logger.warning("booking_conflict_exhausted", event_id=data.event_id, user_id=user_id)
        return booking_rules.conflict()
