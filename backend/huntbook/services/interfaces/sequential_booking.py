"""
Sequential booking - fallback for stores without multi-statement transactions.

Each write commits on its own:

  1. Re-read event and existing booking immediately before writing
  2. Claim the spot (same version-checked UPDATE as the transactional path)
     and commit
  3. Insert the booking and commit; on any database error the claimed spot
     is handed back before the error propagates (or, for a unique index
     violation, the existing booking is answered)
  4. Profile, membership and payment record are post-commit side effects:
     failing to update them does not fail the booking

WEAKER GUARANTEE: between step 1 and step 3 another request for the same
user and event can pass the duplicate check too. The unique index on active
bookings still stops the second insert, but only after its spot was claimed
(and then released again). Use the transactional strategy wherever the
database supports it.
"""

from functools import partial

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.config import get_settings
from huntbook.core.logging import get_logger
from huntbook.core.metrics import booking_retries
from huntbook.models.booking import BOOKING_CONFIRMED
from huntbook.models.user import User
from huntbook.repositories import BookingRepository, EventRepository, UserRepository
from huntbook.schemas.booking import BookingCreate, BookingResult
from huntbook.schemas.payment import PaymentDetails
from huntbook.services import booking_rules
from huntbook.services.interfaces.booking_strategy import BookingStrategy
from huntbook.services.membership_service import update_user_membership
from huntbook.services.payment_service import record_payment_details
from huntbook.services.side_effects import SideEffects

logger = get_logger(__name__)


class SequentialBooking(BookingStrategy):
    name = "sequential"

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

        # Booking rows reference the profile, so it has to exist first
        if await users.get(user_id) is None:
            await users.add(User(id=user_id, email=data.email or None, display_name=data.display_name or None))
            await db.commit()

        for attempt in range(1, get_settings().BOOKING_MAX_RETRIES + 1):
            event = await events.get(data.event_id, refresh=True)
            existing = await bookings.find_active(user_id, data.event_id)
            if existing is not None:
                return booking_rules.already_booked(existing)

            verdict = booking_rules.evaluate_bookability(event)
            if not verdict.bookable:
                return booking_rules.rejected(verdict)

            status, payment_status = booking_rules.resolve_booking_status(event, data.payment_details)
            if status != BOOKING_CONFIRMED:
                break
            if await events.claim_spot(event, user_id):
                await db.commit()
                break

            logger.info("booking_retry", event_id=data.event_id, attempt=attempt, reason="version_conflict")
            booking_retries.inc()
            await db.rollback()
        else:
            return booking_rules.conflict()

        event_id = event.id
        try:
            booking = await bookings.add(
                booking_rules.build_booking(event, user_id, data, status, payment_status)
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            if status == BOOKING_CONFIRMED:
                await self._release(db, event_id, user_id)
            if not isinstance(e, IntegrityError):
                raise
            existing = await bookings.find_active(user_id, event_id)
            if existing is None:
                raise
            logger.info("booking_duplicate_rejected", user_id=user_id, event_id=event_id)
            return booking_rules.already_booked(existing)

        booking_id = booking.id
        result = booking_rules.created(booking)
        logger.info(
            "booking_created",
            booking_id=booking_id,
            user_id=user_id,
            event_id=event_id,
            status=status,
            strategy=self.name,
        )

        effects.add(
            "user_booking_lists",
            partial(self._update_user, db, user_id, event_id, booking_id, status == BOOKING_CONFIRMED),
        )
        if status != BOOKING_CONFIRMED:
            effects.add("event_pending_bookings", partial(self._add_pending, db, event_id, booking_id))
        effects.add("membership", partial(self._update_membership, db, user_id, data.personal_details()))
        if data.payment_details is not None:
            effects.add(
                "payment_record",
                partial(self._record_payment, db, data.payment_details, user_id, event_id, booking_id),
            )
        return result

    async def _release(self, db: AsyncSession, event_id: int, user_id: str) -> None:
        """Hand back a spot claimed for an insert that then failed."""
        events = EventRepository(db)
        for _ in range(get_settings().BOOKING_MAX_RETRIES):
            event = await events.get(event_id, refresh=True)
            if event is None or await events.release_spot(event, user_id):
                await db.commit()
                logger.info("booking_spot_released", event_id=event_id, user_id=user_id)
                return
            await db.rollback()
        logger.error("booking_spot_release_failed", event_id=event_id, user_id=user_id)

    @staticmethod
    async def _update_user(
        db: AsyncSession, user_id: str, event_id: int, booking_id: int, confirmed: bool
    ) -> None:
        users = UserRepository(db)
        user = await users.get(user_id)
        if user is None:
            return
        if confirmed:
            await users.add_event_booked(user, event_id)
        else:
            await users.add_pending_booking(user, booking_id)

    @staticmethod
    async def _add_pending(db: AsyncSession, event_id: int, booking_id: int) -> None:
        events = EventRepository(db)
        event = await events.get(event_id, refresh=True)
        if event is not None and not await events.add_pending_booking(event, booking_id):
            raise RuntimeError(f"event {event_id} changed while recording pending booking")

    @staticmethod
    async def _update_membership(db: AsyncSession, user_id: str, personal_details: dict) -> None:
        user = await UserRepository(db).get(user_id)
        if user is not None:
            await update_user_membership(db, user, personal_details)

    @staticmethod
    async def _record_payment(
        db: AsyncSession,
        details: PaymentDetails,
        user_id: str,
        event_id: int,
        booking_id: int,
    ) -> None:
        await record_payment_details(db, details, user_id=user_id, event_id=event_id, booking_id=booking_id)
