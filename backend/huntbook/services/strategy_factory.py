"""
Booking strategy factory.
Configures which booking strategy the engine writes through.
"""

from typing import Optional

from huntbook.core.config import get_settings
from huntbook.services.interfaces.booking_strategy import BookingStrategy
from huntbook.services.interfaces.sequential_booking import SequentialBooking
from huntbook.services.interfaces.transactional_booking import TransactionalBooking

STRATEGIES = {
    TransactionalBooking.name: TransactionalBooking,
    SequentialBooking.name: SequentialBooking,
}


def get_booking_strategy(name: Optional[str] = None) -> BookingStrategy:
    """
    Build the named strategy, or the configured one.

    - transactional (default): single transaction with optimistic locking
    - sequential: independent writes, for stores without transactions

    Can be overridden via BOOKING_STRATEGY env var.
    """
    name = name or get_settings().BOOKING_STRATEGY
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown booking strategy: {name!r}")


# Singleton instance
_strategy: Optional[BookingStrategy] = None


def get_strategy() -> BookingStrategy:
    """Get booking strategy singleton."""
    global _strategy
    if _strategy is None:
        _strategy = get_booking_strategy()
    return _strategy
