"""
Tests for booking endpoints including concurrency scenarios.
"""

import asyncio
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from conftest import auth_for, create_event, fetch, fetch_all
from huntbook.models import Booking, Event, OutboundMail, Payment, User
from huntbook.repositories import BookingRepository, UserRepository
from huntbook.schemas.booking import BookingCreate
from huntbook.services import strategy_factory
from huntbook.services.booking_service import BookingEngine
from huntbook.services.interfaces import SequentialBooking, TransactionalBooking
from huntbook.services.side_effects import SideEffects


@pytest.mark.asyncio
async def test_book_free_event(client: AsyncClient, auth_headers, test_event):
    """Successful booking takes a spot and lists the user as attendee."""
    response = await client.post(
        "/api/v1/bookings",
        json={"event_id": test_event.id, "email": "ada@example.com", "display_name": "Ada"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Booking created successfully"
    assert data["status"] == "confirmed"
    assert data["requires_payment"] is False
    assert "created" not in data

    event = await fetch(Event, test_event.id)
    assert event.spots_left == 9
    assert event.attendees == ["user-1"]
    assert event.version == test_event.version + 1

    user = await fetch(User, "user-1")
    assert user.events_booked == [test_event.id]
    assert datetime.now(timezone.utc).year in user.membership_years

    booking = await fetch(Booking, data["booking_id"])
    assert booking.payment_status == "NOT_REQUIRED"
    assert booking.contact_email == "ada@example.com"


@pytest.mark.asyncio
async def test_book_unauthenticated(client: AsyncClient, test_event):
    """Unauthenticated booking returns 401."""
    response = await client.post("/api/v1/bookings", json={"event_id": test_event.id})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_with_invalid_token(client: AsyncClient, test_event):
    response = await client.post(
        "/api/v1/bookings",
        json={"event_id": test_event.id},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_missing_event(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/bookings", json={"event_id": 99999}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["message"] == "Event not found"


@pytest.mark.asyncio
async def test_book_past_event_is_closed(client: AsyncClient, auth_headers, past_event):
    response = await client.post("/api/v1/bookings", json={"event_id": past_event.id}, headers=auth_headers)
    assert response.json() == {
        "success": False,
        "message": "Booking closed",
        "booking_id": None,
        "status": None,
        "requires_payment": False,
        "failure": "closed",
    }


@pytest.mark.asyncio
async def test_book_full_event(client: AsyncClient, auth_headers):
    event = await create_event(spots=3, spots_left=0, attendees=["a", "b", "c"])
    response = await client.post("/api/v1/bookings", json={"event_id": event.id}, headers=auth_headers)
    assert response.json()["success"] is False
    assert response.json()["message"] == "No spots left"

    bookings = await fetch_all(select(Booking).where(Booking.event_id == event.id))
    assert bookings == []


@pytest.mark.asyncio
async def test_duplicate_booking_is_idempotent(client: AsyncClient, auth_headers, test_event):
    """Booking the same event twice answers success and changes nothing."""
    first = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)
    second = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)

    assert second.status_code == 200
    assert second.json()["success"] is True
    assert second.json()["message"] == "You have already booked this event"
    assert second.json()["booking_id"] == first.json()["booking_id"]

    event = await fetch(Event, test_event.id)
    assert event.spots_left == 9
    bookings = await fetch_all(select(Booking).where(Booking.event_id == test_event.id))
    assert len(bookings) == 1


@pytest.mark.asyncio
async def test_concurrent_booking_last_spot(client: AsyncClient):
    """
    CRITICAL TEST: Two users race for the last spot.
    Exactly one must succeed; the event must never be overbooked.
    """
    event = await create_event(spots=1)

    responses = await asyncio.gather(
        client.post("/api/v1/bookings", json={"event_id": event.id}, headers=auth_for("racer-a")),
        client.post("/api/v1/bookings", json={"event_id": event.id}, headers=auth_for("racer-b")),
    )
    results = [response.json() for response in responses]

    assert all(response.status_code == 200 for response in responses)
    assert sorted(result["success"] for result in results) == [False, True]
    loser = next(result for result in results if not result["success"])
    assert loser["message"] == "No spots left"

    event = await fetch(Event, event.id)
    assert event.spots_left == 0
    assert len(event.attendees) == 1
    bookings = await fetch_all(select(Booking).where(Booking.event_id == event.id))
    assert len(bookings) == 1


@pytest.mark.asyncio
async def test_concurrent_booking_never_oversells(client: AsyncClient):
    event = await create_event(spots=3)

    responses = await asyncio.gather(
        *[
            client.post("/api/v1/bookings", json={"event_id": event.id}, headers=auth_for(f"crowd-{i}"))
            for i in range(8)
        ]
    )
    succeeded = [response for response in responses if response.json()["success"]]
    assert len(succeeded) == 3

    event = await fetch(Event, event.id)
    assert event.spots_left == 0
    assert event.spots - event.spots_left == len(event.attendees)


@pytest.mark.asyncio
async def test_paid_event_without_payment_is_pending(client: AsyncClient, auth_headers, paid_event):
    """A payment-pending booking does not hold a spot."""
    response = await client.post("/api/v1/bookings", json={"event_id": paid_event.id}, headers=auth_headers)
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "payment-pending"
    assert data["requires_payment"] is True

    event = await fetch(Event, paid_event.id)
    assert event.spots_left == 5
    assert event.attendees == []
    assert event.pending_bookings == [data["booking_id"]]

    user = await fetch(User, "user-1")
    assert user.events_booked == []
    assert user.pending_bookings == [data["booking_id"]]


@pytest.mark.asyncio
async def test_paid_event_with_completed_payment(client: AsyncClient, auth_headers, paid_event):
    payment_details = {
        "payment_id": "CAPTURE-1",
        "order_id": "order_1700000000_abc",
        "payer_email": "payer@example.com",
        "amount": 25.0,
        "currency": "EUR",
        "status": "COMPLETED",
    }
    response = await client.post(
        "/api/v1/bookings",
        json={"event_id": paid_event.id, "payment_details": payment_details},
        headers=auth_headers,
    )
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["requires_payment"] is False

    event = await fetch(Event, paid_event.id)
    assert event.spots_left == 4

    payments = await fetch_all(select(Payment).where(Payment.payment_id == "CAPTURE-1"))
    assert len(payments) == 1
    assert payments[0].status == "COMPLETED"
    assert payments[0].booking_id == data["booking_id"]


@pytest.mark.asyncio
async def test_booking_stores_personal_details(client: AsyncClient, auth_headers, test_event):
    await client.post(
        "/api/v1/bookings",
        json={
            "event_id": test_event.id,
            "name": "Ada",
            "surname": "Lovelace",
            "birth_date": "1990-12-10",
            "address": "Via Roma 1",
            "tax_id": "LVLDAA90T50H501X",
        },
        headers=auth_headers,
    )
    user = await fetch(User, "user-1")
    assert user.surname == "Lovelace"
    assert user.personal_details_last_confirmed is not None
    assert user.has_complete_profile


@pytest.mark.asyncio
async def test_booking_creates_missing_profile(client: AsyncClient, test_event):
    response = await client.post(
        "/api/v1/bookings",
        json={"event_id": test_event.id, "email": "new@example.com"},
        headers=auth_for("brand-new"),
    )
    assert response.json()["success"] is True
    user = await fetch(User, "brand-new")
    assert user.email == "new@example.com"
    assert user.events_booked == [test_event.id]


@pytest.mark.asyncio
async def test_confirmation_mail_queued(client: AsyncClient, auth_headers, test_event):
    response = await client.post(
        "/api/v1/bookings",
        json={"event_id": test_event.id, "email": "ada@example.com"},
        headers=auth_headers,
    )
    mails = await fetch_all(select(OutboundMail).where(OutboundMail.booking_id == response.json()["booking_id"]))
    assert len(mails) == 1
    assert mails[0].to == "ada@example.com"
    assert mails[0].subject == f"Booking Confirmed: {test_event.title}"


@pytest.mark.asyncio
async def test_check_booking_state(client: AsyncClient, auth_headers, test_event):
    before = await client.get(f"/api/v1/bookings/check/{test_event.id}", headers=auth_headers)
    assert before.json() == {"is_booked": False, "status": "none", "booking_id": None}

    booked = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)
    after = await client.get(f"/api/v1/bookings/check/{test_event.id}", headers=auth_headers)
    assert after.json() == {"is_booked": True, "status": "confirmed", "booking_id": booked.json()["booking_id"]}


@pytest.mark.asyncio
async def test_list_user_bookings(client: AsyncClient, auth_headers, test_event):
    await client.post(
        "/api/v1/bookings",
        json={"event_id": test_event.id, "phone": "+39 333 000", "requests": "Tripod spot please"},
        headers=auth_headers,
    )
    response = await client.get("/api/v1/bookings", headers=auth_headers)
    assert response.status_code == 200
    bookings = response.json()
    assert len(bookings) == 1
    assert bookings[0]["contact_info"]["phone"] == "+39 333 000"
    assert bookings[0]["specific_request"] == "Tripod spot please"


@pytest.mark.asyncio
async def test_cancel_booking_releases_spot(client: AsyncClient, auth_headers, admin_headers, test_event):
    booked = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)
    booking_id = booked.json()["booking_id"]

    response = await client.post(f"/api/v1/admin/bookings/{booking_id}/cancel", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    event = await fetch(Event, test_event.id)
    assert event.spots_left == 10
    assert event.attendees == []
    user = await fetch(User, "user-1")
    assert user.events_booked == []

    state = await client.get(f"/api/v1/bookings/check/{test_event.id}", headers=auth_headers)
    assert state.json() == {"is_booked": False, "status": "cancelled", "booking_id": booking_id}


@pytest.mark.asyncio
async def test_cancel_twice(client: AsyncClient, auth_headers, admin_headers, test_event):
    """Second cancellation is rejected and does not release another spot."""
    booked = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)
    booking_id = booked.json()["booking_id"]

    await client.post(f"/api/v1/admin/bookings/{booking_id}/cancel", headers=admin_headers)
    response = await client.post(f"/api/v1/admin/bookings/{booking_id}/cancel", headers=admin_headers)
    assert response.status_code == 400

    event = await fetch(Event, test_event.id)
    assert event.spots_left == 10


@pytest.mark.asyncio
async def test_cancel_missing_booking(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/admin/bookings/99999/cancel", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_pending_booking_keeps_spots(client: AsyncClient, auth_headers, admin_headers, paid_event):
    booked = await client.post("/api/v1/bookings", json={"event_id": paid_event.id}, headers=auth_headers)
    booking_id = booked.json()["booking_id"]

    await client.post(f"/api/v1/admin/bookings/{booking_id}/cancel", headers=admin_headers)

    event = await fetch(Event, paid_event.id)
    assert event.spots_left == 5
    assert event.pending_bookings == []


@pytest.mark.asyncio
async def test_rebook_after_cancel(client: AsyncClient, auth_headers, admin_headers, test_event):
    first = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)
    await client.post(f"/api/v1/admin/bookings/{first.json()['booking_id']}/cancel", headers=admin_headers)

    second = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)
    assert second.json()["message"] == "Booking created successfully"
    assert second.json()["booking_id"] != first.json()["booking_id"]

    event = await fetch(Event, test_event.id)
    assert event.spots_left == 9


@pytest.mark.asyncio
async def test_cancel_requires_admin(client: AsyncClient, auth_headers, test_event):
    booked = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)
    response = await client.post(
        f"/api/v1/admin/bookings/{booked.json()['booking_id']}/cancel", headers=auth_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_sequential_strategy_books(client: AsyncClient, auth_headers, test_event, monkeypatch):
    monkeypatch.setattr(strategy_factory, "_strategy", SequentialBooking())

    response = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)
    assert response.json()["success"] is True

    event = await fetch(Event, test_event.id)
    assert event.spots_left == 9
    assert event.attendees == ["user-1"]
    user = await fetch(User, "user-1")
    assert user.events_booked == [test_event.id]


@pytest.mark.asyncio
async def test_sequential_strategy_pending_booking(client: AsyncClient, auth_headers, paid_event, monkeypatch):
    monkeypatch.setattr(strategy_factory, "_strategy", SequentialBooking())

    response = await client.post("/api/v1/bookings", json={"event_id": paid_event.id}, headers=auth_headers)
    booking_id = response.json()["booking_id"]

    event = await fetch(Event, paid_event.id)
    assert event.spots_left == 5
    assert event.pending_bookings == [booking_id]


@pytest.mark.asyncio
async def test_sequential_strategy_last_spot(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(strategy_factory, "_strategy", SequentialBooking())
    event = await create_event(spots=1)

    responses = await asyncio.gather(
        client.post("/api/v1/bookings", json={"event_id": event.id}, headers=auth_for("seq-a")),
        client.post("/api/v1/bookings", json={"event_id": event.id}, headers=auth_for("seq-b")),
    )
    assert sorted(response.json()["success"] for response in responses) == [False, True]

    event = await fetch(Event, event.id)
    assert event.spots_left == 0


@pytest.mark.asyncio
async def test_engine_event_booking_queries(client: AsyncClient, auth_headers, admin_headers, db_session, test_event):
    first = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers)
    second = await client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_for("user-2"))
    await client.post(f"/api/v1/admin/bookings/{second.json()['booking_id']}/cancel", headers=admin_headers)

    engine = BookingEngine(db_session)
    assert await engine.check_user_booking("user-1", test_event.id) is True
    assert await engine.check_user_booking("user-2", test_event.id) is False
    assert await engine.get_event_bookings_count(test_event.id) == 1
    assert [booking.id for booking in await engine.get_event_bookings(test_event.id)] == [first.json()["booking_id"]]
    await db_session.rollback()


@pytest.mark.asyncio
async def test_concurrent_duplicate_requests_keep_one_booking(client: AsyncClient, auth_headers, test_event):
    """Repeated clicks from the same user race each other; one booking, one spot."""
    responses = await asyncio.gather(
        *[client.post("/api/v1/bookings", json={"event_id": test_event.id}, headers=auth_headers) for _ in range(6)]
    )
    results = [response.json() for response in responses]
    assert all(result["success"] for result in results)
    assert [result["message"] for result in results].count("Booking created successfully") == 1
    assert len({result["booking_id"] for result in results}) == 1

    bookings = await fetch_all(select(Booking).where(Booking.event_id == test_event.id))
    assert len(bookings) == 1
    event = await fetch(Event, test_event.id)
    assert event.spots_left == 9
    assert event.attendees == ["user-1"]


@pytest.mark.asyncio
async def test_profile_created_by_concurrent_request_is_reused(db_session, test_user, test_event, monkeypatch):
    real_get = UserRepository.get
    reads = {"count": 0}

    async def stale_first_read(self, user_id):
        # First read misses a profile another request has just inserted
        reads["count"] += 1
        if reads["count"] == 1:
            return None
        return await real_get(self, user_id)

    monkeypatch.setattr(UserRepository, "get", stale_first_read)

    result = await TransactionalBooking().reserve(
        db_session, test_user.id, BookingCreate(event_id=test_event.id), SideEffects(db_session)
    )
    assert result.success is True
    assert result.message == "Booking created successfully"

    assert len(await fetch_all(select(User))) == 1
    event = await fetch(Event, test_event.id)
    assert event.spots_left == 9


@pytest.mark.asyncio
async def test_sequential_insert_failure_hands_spot_back(db_session, test_user, test_event, monkeypatch):
    async def insert_fails(self, booking):
        raise OperationalError("INSERT INTO bookings", {}, Exception("disk I/O error"))

    monkeypatch.setattr(BookingRepository, "add", insert_fails)

    with pytest.raises(OperationalError):
        await SequentialBooking().reserve(
            db_session, test_user.id, BookingCreate(event_id=test_event.id), SideEffects(db_session)
        )

    event = await fetch(Event, test_event.id)
    assert event.spots_left == 10
    assert event.attendees == []
    assert await fetch_all(select(Booking)) == []
