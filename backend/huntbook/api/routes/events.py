"""
Public event endpoints with Redis caching on the listings.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.logging import get_logger
from huntbook.db.session import get_db
from huntbook.schemas.booking import Bookability
from huntbook.schemas.event import EventListResponse, EventResponse, EventStatusResponse, EventType
from huntbook.services.booking_service import BookingEngine
from huntbook.services.cache_service import get_cached_events, set_cached_events
from huntbook.services.event_service import get_event, list_active_events, list_past_events, to_response
from huntbook.services.status_service import determine_event_status

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get("", response_model=EventListResponse)
async def list_events_endpoint(
    type: Optional[EventType] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Active and upcoming events, optionally filtered by type.
    Results are cached in Redis for a short TTL and invalidated on writes.
    """
    cached = await get_cached_events("active", type)
    if cached:
        logger.info("events_list_cache_hit", type=type)
        cached["cached"] = True
        return EventListResponse(**cached)

    events = await list_active_events(db, type)
    response_data = {
        "events": [event.model_dump() for event in events],
        "total": len(events),
        "cached": False,
    }
    await set_cached_events("active", type, response_data)
    return EventListResponse(**response_data)


@router.get("/past", response_model=EventListResponse)
async def list_past_events_endpoint(db: AsyncSession = Depends(get_db)):
    cached = await get_cached_events("past")
    if cached:
        cached["cached"] = True
        return EventListResponse(**cached)

    events = await list_past_events(db)
    response_data = {
        "events": [event.model_dump() for event in events],
        "total": len(events),
        "cached": False,
    }
    await set_cached_events("past", None, response_data)
    return EventListResponse(**response_data)


@router.get("/status", response_model=EventStatusResponse)
async def event_status_endpoint(
    date: str = Query(..., max_length=50),
    time: str = Query(..., max_length=50),
):
    """Resolve a schedule to upcoming/active/past/unknown."""
    return EventStatusResponse(status=determine_event_status(date, time))


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Not cached (needs real-time spot counts)."""
    event = await get_event(db, event_id)
    return to_response(event)


@router.get("/{event_id}/bookable", response_model=Bookability)
async def event_bookable_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await BookingEngine(db).is_event_bookable(event_id)
