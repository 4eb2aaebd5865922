"""
Event store.

Spot accounting goes through `_versioned_update`: the UPDATE only applies if
the row still carries the version that was read, so two writers working from
the same snapshot cannot both decrement `spots_left`.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.logging import get_logger
from huntbook.models.event import Event
from huntbook.repositories._lists import normalized, with_item, without_item

logger = get_logger(__name__)


class EventRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, event_id: int, refresh: bool = False) -> Optional[Event]:
        stmt = select(Event).where(Event.id == event_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Event]:
        result = await self.session.execute(select(Event).order_by(Event.id))
        return list(result.scalars().all())

    async def add(self, event: Event) -> Event:
        event.attendees = normalized(event.attendees)
        event.pending_bookings = normalized(event.pending_bookings)
        self.session.add(event)
        await self.session.flush()
        await self.session.refresh(event)
        return event

    async def delete(self, event: Event) -> None:
        await self.session.delete(event)
        await self.session.flush()

    async def _versioned_update(self, event: Event, guard_capacity: bool = False, **values) -> bool:
        """Apply `values` if nobody changed the row since `event` was read."""
        stmt = (
            update(Event)
            .where(Event.id == event.id, Event.version == event.version)
            .values(version=Event.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if guard_capacity:
            stmt = stmt.where(Event.spots_left > 0)
        result = await self.session.execute(stmt)
        applied = result.rowcount == 1
        await self.session.refresh(event)
        return applied

    async def claim_spot(
        self,
        event: Event,
        user_id: str,
        booking_id: Optional[int] = None,
        require_capacity: bool = True,
    ) -> bool:
        """
        Take one spot for `user_id` and list them as an attendee.

        With `require_capacity=False` the decrement floors at zero instead of
        refusing, which is how a completed payment for a full event is applied.
        Returns False on a version conflict (caller re-reads and retries).
        """
        values = {
            "spots_left": max(0, (event.spots_left or 0) - 1),
            "attendees": with_item(event.attendees, user_id),
        }
        if booking_id is not None:
            values["pending_bookings"] = without_item(event.pending_bookings, booking_id)
        return await self._versioned_update(event, guard_capacity=require_capacity, **values)

    async def release_spot(self, event: Event, user_id: str) -> bool:
        if user_id not in (event.attendees or []):
            return True
        return await self._versioned_update(
            event,
            spots_left=min(event.spots, (event.spots_left or 0) + 1),
            attendees=without_item(event.attendees, user_id),
        )

    async def add_pending_booking(self, event: Event, booking_id: int) -> bool:
        return await self._versioned_update(
            event, pending_bookings=with_item(event.pending_bookings, booking_id)
        )

    async def remove_pending_booking(self, event: Event, booking_id: int) -> bool:
        if booking_id not in (event.pending_bookings or []):
            return True
        return await self._versioned_update(
            event, pending_bookings=without_item(event.pending_bookings, booking_id)
        )

    async def set_status(self, event: Event, status: str) -> None:
        event.status = status
        await self.session.flush()
