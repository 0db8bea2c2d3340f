"""
In-memory booking record store for tests and demos.
"""

import logging
from typing import Iterable, List, Optional

from pendulum import Date

from ..domain.exceptions import SlotConflictError
from ..domain.models import Booking

logger = logging.getLogger(__name__)


def filter_by_range(
    bookings: Iterable[Booking],
    start: Optional[Date],
    end: Optional[Date],
) -> List[Booking]:
    """Keep bookings whose date lies in the inclusive [start, end] range."""
    return [
        booking for booking in bookings
        if (start is None or booking.date >= start)
        and (end is None or booking.date <= end)
    ]


class InMemoryBookingStore:
    """
    Keeps bookings in a list owned by the instance.

    ``create`` checks uniqueness and appends without awaiting in between, so
    concurrent creates on one conflict key yield exactly one success.
    """

    def __init__(self, bookings: Optional[Iterable[Booking]] = None):
        self._bookings: List[Booking] = list(bookings or [])

    async def list_bookings(
        self,
        start: Optional[Date] = None,
        end: Optional[Date] = None,
    ) -> List[Booking]:
        return filter_by_range(self._bookings, start, end)

    async def create(self, booking: Booking) -> Booking:
        key = booking.conflict_key
        if any(existing.conflict_key == key for existing in self._bookings):
            raise SlotConflictError(f"Slot already booked: {key}", key=key)
        self._bookings.append(booking)

        logger.debug("Stored booking %s in memory", booking.id)
        return booking
