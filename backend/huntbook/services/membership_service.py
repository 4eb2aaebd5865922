"""
User profiles, yearly membership and the personal-details requirement.

Profiles are created on first sign-in from the identity provider's attributes.
Every successful booking marks the user as a member for the current calendar
year; personal details have to be (re)confirmed on the first booking of each
year, and are stored with that confirmation.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.logging import get_logger
from huntbook.models.user import PERSONAL_DETAIL_FIELDS, User
from huntbook.repositories import UserRepository
from huntbook.schemas.user import BookingRequirements, UserSync

logger = get_logger(__name__)

REASON_NO_PROFILE = "first_time_user"
REASON_NEVER_CONFIRMED = "never_confirmed"
REASON_NEW_YEAR = "new_year_confirmation"
REASON_INCOMPLETE = "incomplete_profile"
REASON_CONFIRMED = "already_confirmed"


async def sync_user_profile(db: AsyncSession, user_id: str, data: UserSync) -> User:
    """Create the profile on first sign-in, refresh identity fields afterwards."""
    users = UserRepository(db)
    user = await users.get(user_id)

    if user is None:
        user = await users.add(
            User(
                id=user_id,
                email=data.email,
                display_name=data.display_name,
                photo_url=data.photo_url,
                role="user",
                events_booked=[],
                membership_years=[],
            )
        )
        logger.info("user_profile_created", user_id=user_id)
        return user

    changed = False
    for field in ("email", "display_name", "photo_url"):
        value = getattr(data, field)
        if value and value != getattr(user, field):
            setattr(user, field, value)
            changed = True
    if changed:
        await db.flush()
        logger.info("user_profile_updated", user_id=user_id)
    return user


async def update_user_membership(
    db: AsyncSession,
    user: User,
    personal_details: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> User:
    """
    Record a booking year on the profile.

    Non-empty personal details overwrite the stored ones and count as this
    year's confirmation.
    """
    now = now or datetime.now(timezone.utc)
    year = now.year

    if year not in (user.membership_years or []):
        user.membership_years = sorted(set(user.membership_years or []) | {year})
    user.last_booking_year = year

    details = {
        field: value
        for field, value in (personal_details or {}).items()
        if field in PERSONAL_DETAIL_FIELDS and value
    }
    if details:
        for field, value in details.items():
            setattr(user, field, value)
        user.personal_details_last_confirmed = now

    await db.flush()
    logger.info(
        "membership_updated",
        user_id=user.id,
        year=year,
        details_confirmed=bool(details),
    )
    return user


def check_booking_requirements(
    user: Optional[User], now: Optional[datetime] = None
) -> BookingRequirements:
    """Whether the booking form has to ask for personal details this time."""
    year = (now or datetime.now(timezone.utc)).year

    if user is None:
        return BookingRequirements(
            needs_personal_details=True, is_first_time=True, reason=REASON_NO_PROFILE
        )

    confirmed = user.personal_details_last_confirmed
    if confirmed is None:
        return BookingRequirements(
            needs_personal_details=True,
            is_first_time=not user.membership_years,
            reason=REASON_NEVER_CONFIRMED,
        )

    if confirmed.year < year:
        return BookingRequirements(
            needs_personal_details=True,
            is_first_time=False,
            reason=REASON_NEW_YEAR,
            last_confirmed_year=confirmed.year,
        )

    if not user.has_complete_profile:
        return BookingRequirements(
            needs_personal_details=True,
            is_first_time=False,
            reason=REASON_INCOMPLETE,
            last_confirmed_year=confirmed.year,
        )

    return BookingRequirements(
        needs_personal_details=False,
        is_first_time=False,
        reason=REASON_CONFIRMED,
        last_confirmed_year=confirmed.year,
    )
