"""
Cross-references candidate times with existing bookings.

This is the heart of the conflict check - pure domain logic over a snapshot
of bookings (no store access, no I/O).
"""

import logging
from typing import Dict, Iterable, List, Sequence, Set

from pendulum import Date

from .models import Booking, Period, Provider, SessionType, TimeSlot

logger = logging.getLogger(__name__)


class AvailabilityResolver:
    """
    Computes which providers are still free at each candidate time.

    A provider is taken at a time iff a booking exists with the same date,
    period, time and provider. The session type is not part of the key: a
    provider cannot hold two sessions of any type at the same time.
    """

    def __init__(self, providers: Sequence[Provider] = tuple(Provider)):
        self.providers = tuple(providers)

    def resolve(
        self,
        date: Date,
        period: Period,
        session_type: SessionType,
        candidate_times: Sequence[str],
        existing_bookings: Iterable[Booking],
    ) -> List[TimeSlot]:
        """
        Attach the set of free providers to every candidate time.

        Fully booked times are kept with an empty provider set; deciding how to
        show them is up to the caller.
        """
        taken = self._taken_providers(date, period, existing_bookings)

        slots = [
            TimeSlot(
                time=candidate,
                available_providers=frozenset(
                    p for p in self.providers if p not in taken.get(candidate, ())
                ),
            )
            for candidate in candidate_times
        ]

        logger.debug(
            "Resolved %d slots for %s %s (%s), %d exhausted",
            len(slots),
            date,
            period.value,
            session_type.value,
            sum(1 for slot in slots if slot.is_exhausted),
        )
        return slots

    def is_available(
        self,
        date: Date,
        period: Period,
        time: str,
        provider: Provider,
        existing_bookings: Iterable[Booking],
    ) -> bool:
        """Check a single (date, period, time, provider) key against bookings."""
        taken = self._taken_providers(date, period, existing_bookings)
        return provider not in taken.get(time, ())

    @staticmethod
    def _taken_providers(
        date: Date,
        period: Period,
        bookings: Iterable[Booking],
    ) -> Dict[str, Set[Provider]]:
        taken: Dict[str, Set[Provider]] = {}
        for booking in bookings:
            if booking.date == date and booking.period == period:
                taken.setdefault(booking.time, set()).add(booking.provider)
        return taken
