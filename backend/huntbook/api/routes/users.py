"""
Profile endpoints for the signed-in user.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.security import get_current_user_id
from huntbook.db.session import get_db
from huntbook.repositories import UserRepository
from huntbook.schemas.user import BookingRequirements, UserResponse, UserSync
from huntbook.services.membership_service import check_booking_requirements, sync_user_profile

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/me/sync", response_model=UserResponse)
async def sync_profile(
    data: UserSync,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Called after every sign-in; creates the profile the first time."""
    return await sync_user_profile(db, user_id, data)


@router.get("/me", response_model=UserResponse)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    user = await UserRepository(db).get(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return user


@router.get("/me/booking-requirements", response_model=BookingRequirements)
async def booking_requirements(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    user = await UserRepository(db).get(user_id)
    return check_booking_requirements(user)
