"""
Booking strategy interface.
Allows swapping how a reservation is written without changing the engine.
"""

from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.schemas.booking import BookingCreate, BookingResult
from huntbook.services.side_effects import SideEffects


class BookingStrategy(ABC):
    """
    Interface for writing a booking.

    Implementations:
    - TransactionalBooking: one transaction, optimistic version check on the
      event row, everything or nothing (primary)
    - SequentialBooking: independent commits with re-validation right before
      each write (fallback; narrows the race window, does not close it)

    Both re-check duplicate and capacity state themselves, since the engine's
    pre-checks ran on data that may already be stale.
    """

    name: str = "abstract"

    @abstractmethod
    async def reserve(
        self,
        db: AsyncSession,
        user_id: str,
        data: BookingCreate,
        effects: SideEffects,
    ) -> BookingResult:
        """
        Write the booking and its spot accounting.

        Args:
            db: Session to write through; the strategy commits it
            user_id: Booking user
            data: Booking form contents
            effects: Queue for post-commit work the strategy does not
                treat as part of the booking

        Returns:
            BookingResult; business rejections are results, not exceptions
        """
        pass
