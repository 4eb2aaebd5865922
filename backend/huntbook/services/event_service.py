"""
Event service handling creation, listings, status maintenance and deletion.

The stored `status` column is only a cache. Listings and stats always use the
status computed from the date/time text at request time; the refresh
operation writes those values back for consumers reading the table directly.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.logging import get_logger
from huntbook.models.booking import Booking
from huntbook.models.event import Event
from huntbook.models.payment import Payment
from huntbook.repositories import EventRepository
from huntbook.schemas.event import EventCreate, EventResponse, EventStats, StatusRefreshResponse
from huntbook.services.status_service import (
    STATUS_PAST,
    determine_event_status,
    is_listable,
    parse_event_start,
)

logger = get_logger(__name__)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def to_response(event: Event, now: Optional[datetime] = None) -> EventResponse:
    """Serialize with the status as of `now` rather than the stored one."""
    response = EventResponse.model_validate(event)
    response.actual_status = determine_event_status(event.date, event.time, now)
    return response


def _start_key(event: Event) -> datetime:
    return parse_event_start(event.date, event.time) or _FAR_FUTURE


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    """Create a new event with every spot available."""
    event = Event(
        **event_data.model_dump(),
        spots_left=event_data.spots,
        attendees=[],
        pending_bookings=[],
        status=determine_event_status(event_data.date, event_data.time),
    )
    event = await EventRepository(db).add(event)

    logger.info("event_created", event_id=event.id, title=event.title, spots=event.spots, status=event.status)
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID."""
    event = await EventRepository(db).get(event_id)
    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Event {event_id} not found",
        )
    return event


async def list_active_events(
    db: AsyncSession, event_type: Optional[str] = None, now: Optional[datetime] = None
) -> list[EventResponse]:
    """
    Active and upcoming events, soonest first.

    Events whose date/time cannot be parsed resolve to 'unknown' and are left
    out; they stay visible to admins through stats and export.
    """
    query = select(Event)
    if event_type:
        query = query.where(Event.type == event_type)
    events = (await db.execute(query)).scalars().all()

    listed = [to_response(event, now) for event in sorted(events, key=_start_key)]
    return [event for event in listed if is_listable(event.actual_status)]


async def list_past_events(db: AsyncSession, now: Optional[datetime] = None) -> list[EventResponse]:
    """Past events, most recent first."""
    events = (await db.execute(select(Event))).scalars().all()
    listed = [to_response(event, now) for event in sorted(events, key=_start_key, reverse=True)]
    return [event for event in listed if event.actual_status == STATUS_PAST]


async def get_events_stats(db: AsyncSession, now: Optional[datetime] = None) -> EventStats:
    events = (await db.execute(select(Event))).scalars().all()

    by_status: dict[str, int] = {}
    by_type: dict[str, int] = {}
    for event in events:
        computed = determine_event_status(event.date, event.time, now)
        by_status[computed] = by_status.get(computed, 0) + 1
        by_type[event.type] = by_type.get(event.type, 0) + 1

    total_bookings = (await db.execute(select(func.count()).select_from(Booking))).scalar_one()
    return EventStats(**by_status, by_type=by_type, total_bookings=total_bookings)


async def update_event_status(
    db: AsyncSession, event_id: int, now: Optional[datetime] = None
) -> tuple[Event, bool]:
    """Write the computed status onto one event. Returns (event, changed)."""
    event = await get_event(db, event_id)
    computed = determine_event_status(event.date, event.time, now)
    if computed == event.status:
        return event, False

    previous = event.status
    await EventRepository(db).set_status(event, computed)
    logger.info("event_status_updated", event_id=event.id, previous=previous, status=computed)
    return event, True


async def refresh_all_statuses(db: AsyncSession, now: Optional[datetime] = None) -> StatusRefreshResponse:
    events = await EventRepository(db).list_all()
    updated = 0
    for event in events:
        computed = determine_event_status(event.date, event.time, now)
        if computed != event.status:
            await EventRepository(db).set_status(event, computed)
            updated += 1

    logger.info("event_statuses_refreshed", checked=len(events), updated=updated)
    return StatusRefreshResponse(checked=len(events), updated=updated)


async def delete_event(db: AsyncSession, event_id: int) -> int:
    """
    Delete an event together with its bookings. Returns the number of
    bookings removed. Payments are kept and lose their event/booking link.
    """
    event = await get_event(db, event_id)
    event_bookings = select(Booking.id).where(Booking.event_id == event_id)

    await db.execute(
        update(Payment)
        .where(Payment.booking_id.in_(event_bookings))
        .values(booking_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(Payment)
        .where(Payment.event_id == event_id)
        .values(event_id=None)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        delete(Booking).where(Booking.event_id == event_id).execution_options(synchronize_session=False)
    )
    removed = result.rowcount
    await EventRepository(db).delete(event)

    logger.info("event_deleted", event_id=event_id, bookings_removed=removed)
    return removed
