"""
Read-only admin exports: the complete data report, per-event rosters and the
users sheet. Nothing here writes.
"""

import csv
import io
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.logging import get_logger
from huntbook.repositories import BookingRepository, EventRepository, UserRepository
from huntbook.schemas.export import ExportedBooking, ExportedEvent, ExportedUser, ExportReport, ExportSummary
from huntbook.services.event_service import get_event
from huntbook.services.status_service import determine_event_status

logger = get_logger(__name__)

ROSTER_HEADERS = [
    "Booking Date",
    "Full Name",
    "Email",
    "Phone",
    "Birth Date",
    "Address",
    "Tax ID",
    "Instagram",
    "Specific Request",
    "Status",
    "Payment Status",
    "Event Date",
    "Event Time",
    "Event Location",
    "Venue Name",
]

USER_HEADERS = ["id", "email", "displayName", "role", "createdAt", "eventsBooked"]


def _count(values: Iterable[str]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


def to_csv(headers: list[str], rows: list[dict]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=headers, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return output.getvalue()


async def export_complete_data(db: AsyncSession) -> ExportReport:
    events = await EventRepository(db).list_all()
    users = await UserRepository(db).list_all()
    bookings = await BookingRepository(db).list_all()

    exported_events = []
    for event in events:
        exported = ExportedEvent.model_validate(event)
        exported.actual_status = determine_event_status(event.date, event.time)
        exported_events.append(exported)

    report = ExportReport(
        generated_at=datetime.now(timezone.utc),
        summary=ExportSummary(
            total_events=len(events),
            total_users=len(users),
            total_bookings=len(bookings),
            events_by_type=_count(event.type for event in events),
            events_by_status=_count(event.status for event in events),
        ),
        events=exported_events,
        users=[ExportedUser.model_validate(user) for user in users],
        bookings=[ExportedBooking.model_validate(booking) for booking in bookings],
    )
    logger.info("data_exported", events=len(events), users=len(users), bookings=len(bookings))
    return report


async def event_roster_rows(db: AsyncSession, event_id: int) -> list[dict]:
    """One row per active booking, contact snapshot first, profile as fallback."""
    event = await get_event(db, event_id)
    bookings = await BookingRepository(db).list_for_event(event_id)
    users = UserRepository(db)

    rows = []
    for booking in bookings:
        user = await users.get(booking.user_id)
        full_name = " ".join(part for part in ((user.name, user.surname) if user else ()) if part)
        rows.append(
            {
                "Booking Date": booking.created_at.isoformat() if booking.created_at else "",
                "Full Name": full_name or booking.contact_display_name or (user.display_name if user else "") or "",
                "Email": booking.contact_email or (user.email if user else "") or "",
                "Phone": booking.contact_phone,
                "Birth Date": (user.birth_date if user else None) or "",
                "Address": (user.address if user else None) or "",
                "Tax ID": (user.tax_id if user else None) or "",
                "Instagram": (user.instagram if user else None) or "",
                "Specific Request": booking.specific_request or "",
                "Status": booking.status,
                "Payment Status": booking.payment_status,
                "Event Date": event.date,
                "Event Time": event.time,
                "Event Location": event.location,
                "Venue Name": event.venue_name or "",
            }
        )
    return rows


async def users_csv(db: AsyncSession) -> str:
    users = await UserRepository(db).list_all()
    rows = [
        {
            "id": user.id,
            "email": user.email or "",
            "displayName": user.display_name or "",
            "role": user.role,
            "createdAt": user.created_at.isoformat() if user.created_at else "",
            "eventsBooked": ";".join(str(event_id) for event_id in user.events_booked or []),
        }
        for user in users
    ]
    return to_csv(USER_HEADERS, rows)
