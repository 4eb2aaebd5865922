"""
Admin endpoints: event management, maintenance, reports and reconciliation.
All routes require a stored profile with role "admin".
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.logging import get_logger
from huntbook.core.security import require_admin
from huntbook.db.session import get_db
from huntbook.repositories import PaymentRepository
from huntbook.schemas.booking import BookingCancelResponse
from huntbook.schemas.event import EventCreate, EventResponse, EventStats, StatusRefreshResponse
from huntbook.schemas.export import ExportReport
from huntbook.schemas.payment import PaymentResponse, ReplayResponse
from huntbook.services import event_service, export_service
from huntbook.services.booking_service import BookingEngine
from huntbook.services.cache_service import invalidate_event_cache
from huntbook.services.payment_service import PaymentReconciler

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


def _csv_response(content: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/events", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.create_event(db, event_data)
    await db.commit()
    # Invalidate cache since the listings changed
    await invalidate_event_cache()
    return event_service.to_response(event)


@router.delete("/events/{event_id}")
async def delete_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    removed = await event_service.delete_event(db, event_id)
    await db.commit()
    await invalidate_event_cache()
    return {"message": "Event deleted", "event_id": event_id, "bookings_removed": removed}


@router.post("/events/refresh-status", response_model=StatusRefreshResponse)
async def refresh_statuses_endpoint(db: AsyncSession = Depends(get_db)):
    result = await event_service.refresh_all_statuses(db)
    await db.commit()
    if result.updated:
        await invalidate_event_cache()
    return result


@router.post("/events/{event_id}/refresh-status", response_model=EventResponse)
async def refresh_event_status_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    event, changed = await event_service.update_event_status(db, event_id)
    await db.commit()
    if changed:
        await invalidate_event_cache()
    return event_service.to_response(event)


@router.get("/stats", response_model=EventStats)
async def stats_endpoint(db: AsyncSession = Depends(get_db)):
    return await event_service.get_events_stats(db)


@router.get("/export", response_model=ExportReport)
async def export_endpoint(db: AsyncSession = Depends(get_db)):
    return await export_service.export_complete_data(db)


@router.get("/events/{event_id}/roster")
async def roster_endpoint(
    event_id: int,
    format: Literal["json", "csv"] = Query("json"),
    db: AsyncSession = Depends(get_db),
):
    rows = await export_service.event_roster_rows(db, event_id)
    if format == "csv":
        return _csv_response(
            export_service.to_csv(export_service.ROSTER_HEADERS, rows),
            f"event_{event_id}_roster.csv",
        )
    return {"event_id": event_id, "rows": rows, "total": len(rows)}


@router.get("/users/export.csv")
async def users_export_endpoint(db: AsyncSession = Depends(get_db)):
    return _csv_response(await export_service.users_csv(db), "users.csv")


@router.post("/bookings/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its spot back to the event."""
    booking = await BookingEngine(db).cancel_booking(booking_id)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
    )


@router.post("/webhooks/replay", response_model=ReplayResponse)
async def replay_webhooks_endpoint(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Re-apply logged webhook deliveries whose processing failed."""
    return await PaymentReconciler(db).replay_unprocessed_webhooks(limit)


@router.get("/events/{event_id}/payments", response_model=list[PaymentResponse])
async def event_payments_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    await event_service.get_event(db, event_id)
    return await PaymentRepository(db).list_for_event(event_id)
