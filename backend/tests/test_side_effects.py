"""
Tests for post-commit side effects, strategy selection, the cache layer
running without Redis and the health endpoint.
"""

import pytest
from sqlalchemy.exc import OperationalError

from conftest import auth_for, fetch
from huntbook.db.session import get_db
from huntbook.main import app
from huntbook.models import Event, User
from huntbook.services import cache_service
from huntbook.services.booking_service import BookingEngine
from huntbook.services.interfaces import SequentialBooking, TransactionalBooking
from huntbook.services.side_effects import SideEffects
from huntbook.services.strategy_factory import get_booking_strategy


@pytest.mark.asyncio
async def test_failed_effect_does_not_stop_the_rest():
    ran = []

    async def first():
        ran.append("first")

    async def broken():
        raise RuntimeError("mail server down")

    async def last():
        ran.append("last")

    effects = SideEffects()
    effects.add("first", first)
    effects.add("broken", broken)
    effects.add("last", last)
    assert len(effects) == 3

    failed = await effects.run()

    assert failed == ["broken"]
    assert ran == ["first", "last"]
    assert len(effects) == 0


@pytest.mark.asyncio
async def test_failed_effect_rolls_back_only_itself(db_session, test_user):
    async def rename():
        user = await db_session.get(User, test_user.id)
        user.display_name = "Renamed"

    async def half_done():
        user = await db_session.get(User, test_user.id)
        user.email = "lost@example.com"
        await db_session.flush()
        raise RuntimeError("boom")

    effects = SideEffects(db_session)
    effects.add("rename", rename)
    effects.add("half_done", half_done)
    assert await effects.run() == ["half_done"]

    stored = await fetch(User, test_user.id)
    assert stored.display_name == "Renamed"
    assert stored.email == "ada@example.com"


@pytest.mark.asyncio
async def test_booking_survives_failed_confirmation_mail(client, test_event, monkeypatch):
    async def mail_down(self, booking_id):
        raise RuntimeError("mail queue unavailable")

    monkeypatch.setattr(BookingEngine, "_queue_confirmation_mail", mail_down)

    response = await client.post(
        "/api/v1/bookings", json={"event_id": test_event.id, "email": "a@example.com"}, headers=auth_for("u-9")
    )
    assert response.json()["success"] is True
    event = await fetch(Event, test_event.id)
    assert event.spots_left == 9


def test_strategy_factory():
    assert isinstance(get_booking_strategy("transactional"), TransactionalBooking)
    assert isinstance(get_booking_strategy("sequential"), SequentialBooking)
    with pytest.raises(ValueError):
        get_booking_strategy("optimistic-ish")


@pytest.mark.asyncio
async def test_cache_is_noop_without_redis():
    assert await cache_service.get_redis() is None
    assert await cache_service.get_cached_events("active") is None
    await cache_service.set_cached_events("active", None, {"events": []})
    await cache_service.invalidate_event_cache()
    assert await cache_service.get_cache_stats() == {"status": "disabled"}


def test_listing_keys():
    assert cache_service._make_listing_key("active", None) == "events:list:active:type=all"
    assert cache_service._make_listing_key("active", "hunt") == "events:list:active:type=hunt"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["booking_strategy"] == "transactional"
    assert response.json()["cache"] == {"status": "disabled"}
    assert response.json()["database"] == "ok"


class UnreachableDatabase:
    async def execute(self, statement):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


@pytest.mark.asyncio
async def test_health_reports_unreachable_database(client):
    async def unreachable_db():
        yield UnreachableDatabase()

    app.dependency_overrides[get_db] = unreachable_db

    response = await client.get("/health")
    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert response.json()["database"] == "unavailable"
