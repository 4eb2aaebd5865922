"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .booking_strategy import BookingStrategy
from .transactional_booking import TransactionalBooking
from .sequential_booking import SequentialBooking

__all__ = ['BookingStrategy', 'TransactionalBooking', 'SequentialBooking']
