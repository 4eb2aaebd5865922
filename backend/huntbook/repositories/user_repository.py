"""
User store.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.models.user import User
from huntbook.repositories._lists import normalized, with_item, without_item


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[User]:
        result = await self.session.execute(select(User).order_by(User.created_at, User.id))
        return list(result.scalars().all())

    async def add(self, user: User) -> User:
        user.membership_years = sorted(set(user.membership_years or []))
        user.events_booked = normalized(user.events_booked)
        user.pending_bookings = normalized(user.pending_bookings)
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def add_event_booked(self, user: User, event_id: int) -> bool:
        """Returns True if the list changed."""
        if event_id in (user.events_booked or []):
            return False
        user.events_booked = with_item(user.events_booked, event_id)
        await self.session.flush()
        return True

    async def remove_event_booked(self, user: User, event_id: int) -> None:
        user.events_booked = without_item(user.events_booked, event_id)
        await self.session.flush()

    async def add_pending_booking(self, user: User, booking_id: int) -> None:
        user.pending_bookings = with_item(user.pending_bookings, booking_id)
        await self.session.flush()

    async def remove_pending_booking(self, user: User, booking_id: int) -> bool:
        if booking_id not in (user.pending_bookings or []):
            return False
        user.pending_bookings = without_item(user.pending_bookings, booking_id)
        await self.session.flush()
        return True
