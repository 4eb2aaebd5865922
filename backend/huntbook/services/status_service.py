"""
Event status resolution from the free-text schedule fields.

The stored `Event.status` goes stale as time passes, so anything that decides
bookability or builds listings calls `determine_event_status` instead.

Formats accepted:
  date: "<Month> <Day>, <Year>"                e.g. "April 20, 2025"
  time: "<H>:<MM> <AM|PM> - <H>:<MM> <AM|PM>"  only the start time is used

Parsing fails closed: anything unparseable resolves to `unknown`, and
`unknown` events never show up as active or upcoming.
"""

import re
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from huntbook.core.config import get_settings

STATUS_UPCOMING = "upcoming"
STATUS_ACTIVE = "active"
STATUS_PAST = "past"
STATUS_UNKNOWN = "unknown"

LISTABLE_STATUSES = (STATUS_ACTIVE, STATUS_UPCOMING)

# Booking/attendance window after the start time
BOOKING_CUTOFF = timedelta(hours=1)

MONTHS = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

_DATE_RE = re.compile(r"(\w+)\s+(\d+),\s+(\d+)")
_TIME_RE = re.compile(r"(\d+):(\d+)\s*([AP]M)", re.IGNORECASE)


def _event_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().EVENT_TIMEZONE)


def parse_event_start(date: Optional[str], time: Optional[str]) -> Optional[datetime]:
    """Return the timezone-aware start of an event, or None if unparseable."""
    if not date or not time:
        return None

    date_parts = _DATE_RE.search(date)
    if not date_parts:
        return None
    month_name = date_parts.group(1).lower()
    if month_name not in MONTHS:
        return None
    month = MONTHS.index(month_name) + 1
    day = int(date_parts.group(2))
    year = int(date_parts.group(3))

    time_parts = _TIME_RE.search(time.split("-")[0].strip())
    if not time_parts:
        return None
    hour = int(time_parts.group(1))
    minute = int(time_parts.group(2))
    is_pm = time_parts.group(3).upper() == "PM"

    # 12-hour clock to 24-hour clock
    if is_pm and hour < 12:
        hour += 12
    if not is_pm and hour == 12:
        hour = 0

    try:
        return datetime(year, month, day, hour, minute, tzinfo=_event_zone())
    except ValueError:
        # "February 30" or "13:75 PM"
        return None


def determine_event_status(
    date: Optional[str], time: Optional[str], now: Optional[datetime] = None
) -> str:
    """
    Resolve 'upcoming' | 'active' | 'past' | 'unknown' for an event schedule.

    `now` defaults to the current instant; a naive `now` is read as wall-clock
    time in the configured event timezone.
    """
    start = parse_event_start(date, time)
    if start is None:
        return STATUS_UNKNOWN

    if now is None:
        now = datetime.now(tz=start.tzinfo)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=start.tzinfo)

    cutoff = start + BOOKING_CUTOFF
    if now > cutoff:
        return STATUS_PAST
    if start <= now <= cutoff:
        return STATUS_ACTIVE
    return STATUS_UPCOMING


def is_listable(status: str) -> bool:
    return status in LISTABLE_STATUSES
