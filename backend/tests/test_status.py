"""
Tests for event status resolution from the date/time text.
"""

from datetime import datetime

import pytest

from huntbook.services.status_service import (
    STATUS_ACTIVE,
    STATUS_PAST,
    STATUS_UNKNOWN,
    STATUS_UPCOMING,
    determine_event_status,
    is_listable,
    parse_event_start,
)

DATE = "April 20, 2025"
TIME = "6:00 PM - 9:00 PM"


def test_status_during_first_hour_is_active():
    assert determine_event_status(DATE, TIME, datetime(2025, 4, 20, 18, 30)) == STATUS_ACTIVE


def test_status_after_first_hour_is_past():
    """Booking closes one hour after the start, not at the end time."""
    assert determine_event_status(DATE, TIME, datetime(2025, 4, 20, 20, 0)) == STATUS_PAST


def test_status_day_before_is_upcoming():
    assert determine_event_status(DATE, TIME, datetime(2025, 4, 19, 12, 0)) == STATUS_UPCOMING


def test_status_boundaries_are_active():
    assert determine_event_status(DATE, TIME, datetime(2025, 4, 20, 18, 0)) == STATUS_ACTIVE
    assert determine_event_status(DATE, TIME, datetime(2025, 4, 20, 19, 0)) == STATUS_ACTIVE
    assert determine_event_status(DATE, TIME, datetime(2025, 4, 20, 19, 1)) == STATUS_PAST


def test_twelve_hour_clock_edges():
    midnight = parse_event_start("May 1, 2025", "12:15 AM - 2:00 AM")
    noon = parse_event_start("May 1, 2025", "12:15 PM - 2:00 PM")
    assert (midnight.hour, midnight.minute) == (0, 15)
    assert (noon.hour, noon.minute) == (12, 15)


def test_month_names_are_case_insensitive():
    start = parse_event_start("april 20, 2025", "6:00 pm - 9:00 pm")
    assert (start.month, start.hour) == (4, 18)


@pytest.mark.parametrize(
    "date, time",
    [
        ("TBD", TIME),
        ("Apr 20, 2025", TIME),
        ("20 April 2025", TIME),
        ("February 30, 2025", TIME),
        (DATE, "evening"),
        (DATE, "25:00 PM - 26:00 PM"),
        ("", TIME),
        (DATE, None),
    ],
)
def test_unparseable_schedule_is_unknown(date, time):
    assert determine_event_status(date, time, datetime(2025, 4, 20, 18, 30)) == STATUS_UNKNOWN


def test_only_active_and_upcoming_are_listable():
    assert is_listable(STATUS_ACTIVE)
    assert is_listable(STATUS_UPCOMING)
    assert not is_listable(STATUS_PAST)
    assert not is_listable(STATUS_UNKNOWN)
