"""
Booking store.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.models.booking import BOOKING_CANCELLED, Booking


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, booking_id: int) -> Optional[Booking]:
        result = await self.session.execute(select(Booking).where(Booking.id == booking_id))
        return result.scalar_one_or_none()

    async def find_active(self, user_id: str, event_id: int) -> Optional[Booking]:
        """The non-cancelled booking for this pair, if any."""
        result = await self.session.execute(
            select(Booking)
            .where(
                Booking.user_id == user_id,
                Booking.event_id == event_id,
                Booking.status != BOOKING_CANCELLED,
            )
            .order_by(Booking.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_latest(self, user_id: str, event_id: int) -> Optional[Booking]:
        """Most relevant booking for this pair: the active one, else the newest cancelled."""
        active = await self.find_active(user_id, event_id)
        if active is not None:
            return active
        result = await self.session.execute(
            select(Booking)
            .where(Booking.user_id == user_id, Booking.event_id == event_id)
            .order_by(Booking.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[Booking]:
        result = await self.session.execute(
            select(Booking).where(Booking.user_id == user_id).order_by(Booking.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_event(self, event_id: int, include_cancelled: bool = False) -> list[Booking]:
        query = select(Booking).where(Booking.event_id == event_id)
        if not include_cancelled:
            query = query.where(Booking.status != BOOKING_CANCELLED)
        result = await self.session.execute(query.order_by(Booking.created_at, Booking.id))
        return list(result.scalars().all())

    async def list_all(self) -> list[Booking]:
        result = await self.session.execute(select(Booking).order_by(Booking.id))
        return list(result.scalars().all())

    async def count_active_for_event(self, event_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(Booking)
            .where(Booking.event_id == event_id, Booking.status != BOOKING_CANCELLED)
        )
        return result.scalar_one()

    async def add(self, booking: Booking) -> Booking:
        self.session.add(booking)
        await self.session.flush()
        await self.session.refresh(booking)
        return booking

    async def update(self, booking: Booking, **values) -> Booking:
        for key, value in values.items():
            setattr(booking, key, value)
        await self.session.flush()
        return booking
