"""
Tests for profile sync, yearly membership and the personal-details requirement.
"""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from conftest import auth_for, fetch
from huntbook.models import User
from huntbook.services.membership_service import (
    REASON_CONFIRMED,
    REASON_INCOMPLETE,
    REASON_NEVER_CONFIRMED,
    REASON_NEW_YEAR,
    REASON_NO_PROFILE,
    check_booking_requirements,
    update_user_membership,
)

FULL_DETAILS = {
    "name": "Ada",
    "surname": "Lovelace",
    "birth_date": "1990-12-10",
    "address": "Via Roma 1, Roma",
    "tax_id": "LVLDAA90T50H501X",
}


def profile(**values) -> User:
    fields = {"id": "u", "role": "user", "membership_years": [], "events_booked": []}
    fields.update(values)
    return User(**fields)


@pytest.mark.asyncio
async def test_sync_creates_profile(client: AsyncClient):
    headers = auth_for("fresh-user")
    missing = await client.get("/api/v1/users/me", headers=headers)
    assert missing.status_code == 404

    response = await client.post(
        "/api/v1/users/me/sync",
        json={"email": "fresh@example.com", "display_name": "Fresh"},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == "fresh-user"
    assert data["role"] == "user"
    assert data["membership_years"] == []
    assert data["current_year_member"] is False

    me = await client.get("/api/v1/users/me", headers=headers)
    assert me.json()["email"] == "fresh@example.com"


@pytest.mark.asyncio
async def test_sync_updates_identity_fields(client: AsyncClient, auth_headers, test_user):
    response = await client.post(
        "/api/v1/users/me/sync",
        json={"email": "ada@newmail.example", "display_name": None},
        headers=auth_headers,
    )
    assert response.json()["email"] == "ada@newmail.example"
    assert response.json()["display_name"] == "Ada"


@pytest.mark.asyncio
async def test_sync_never_grants_admin(client: AsyncClient):
    await client.post("/api/v1/users/me/sync", json={"email": "x@example.com"}, headers=auth_for("x"))
    user = await fetch(User, "x")
    assert user.role == "user"


@pytest.mark.asyncio
async def test_requirements_flow(client: AsyncClient, test_event):
    headers = auth_for("newcomer")

    before = await client.get("/api/v1/users/me/booking-requirements", headers=headers)
    assert before.json()["reason"] == REASON_NO_PROFILE
    assert before.json()["needs_personal_details"] is True

    await client.post("/api/v1/users/me/sync", json={"email": "n@example.com"}, headers=headers)
    synced = await client.get("/api/v1/users/me/booking-requirements", headers=headers)
    assert synced.json()["reason"] == REASON_NEVER_CONFIRMED
    assert synced.json()["is_first_time"] is True

    await client.post("/api/v1/bookings", json={"event_id": test_event.id, **FULL_DETAILS}, headers=headers)
    after = await client.get("/api/v1/users/me/booking-requirements", headers=headers)
    assert after.json()["reason"] == REASON_CONFIRMED
    assert after.json()["needs_personal_details"] is False
    assert after.json()["last_confirmed_year"] == datetime.now(timezone.utc).year

    me = await client.get("/api/v1/users/me", headers=headers)
    assert me.json()["current_year_member"] is True
    assert me.json()["events_booked"] == [test_event.id]


def test_requirements_new_year():
    user = profile(
        membership_years=[2024],
        personal_details_last_confirmed=datetime(2024, 5, 1, tzinfo=timezone.utc),
        **FULL_DETAILS,
    )
    result = check_booking_requirements(user, now=datetime(2025, 1, 2, tzinfo=timezone.utc))
    assert result.reason == REASON_NEW_YEAR
    assert result.needs_personal_details is True
    assert result.is_first_time is False
    assert result.last_confirmed_year == 2024


def test_requirements_incomplete_profile():
    user = profile(
        membership_years=[2025],
        personal_details_last_confirmed=datetime(2025, 3, 1, tzinfo=timezone.utc),
        name="Ada",
    )
    result = check_booking_requirements(user, now=datetime(2025, 6, 1, tzinfo=timezone.utc))
    assert result.reason == REASON_INCOMPLETE
    assert result.needs_personal_details is True


def test_requirements_returning_member_never_confirmed():
    user = profile(membership_years=[2023])
    result = check_booking_requirements(user, now=datetime(2025, 6, 1, tzinfo=timezone.utc))
    assert result.reason == REASON_NEVER_CONFIRMED
    assert result.is_first_time is False


@pytest.mark.asyncio
async def test_update_membership_adds_year_once(db_session, test_user):
    user = await db_session.get(User, test_user.id)
    now = datetime(2025, 6, 1, tzinfo=timezone.utc)

    await update_user_membership(db_session, user, now=now)
    await update_user_membership(db_session, user, now=now)
    await db_session.commit()

    stored = await fetch(User, test_user.id)
    assert stored.membership_years == [2025]
    assert stored.last_booking_year == 2025
    assert stored.personal_details_last_confirmed is None


@pytest.mark.asyncio
async def test_update_membership_ignores_empty_details(db_session, test_user):
    user = await db_session.get(User, test_user.id)
    user.name = "Ada"
    now = datetime(2025, 6, 1, tzinfo=timezone.utc)

    await update_user_membership(
        db_session, user, personal_details={"name": "", "surname": "Lovelace", "role": "admin"}, now=now
    )
    await db_session.commit()

    stored = await fetch(User, test_user.id)
    assert stored.name == "Ada"
    assert stored.surname == "Lovelace"
    assert stored.role == "user"
    assert stored.personal_details_last_confirmed is not None
