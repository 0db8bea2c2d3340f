"""
Application services for computing availability and creating bookings.

The service coordinates reading bookings via a record store adapter and
delegates slot generation and the conflict check to the domain-level
``SlotGenerator`` and ``AvailabilityResolver``. The store is injected through
a small protocol so tests can swap in an in-memory implementation.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from pendulum import Date

from ..domain.availability import AvailabilityResolver
from ..domain.exceptions import SlotConflictError
from ..domain.models import Booking, Period, Provider, SessionType, TimeSlot
from ..domain.schedule import WeeklyScheduleTemplate
from ..domain.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)


class BookingStoreProtocol(Protocol):
    """Protocol describing the record store behaviour needed by the service."""

    async def list_bookings(
        self,
        start: Optional[Date] = None,
        end: Optional[Date] = None,
    ) -> List[Booking]:
        """Return all bookings, optionally limited to an inclusive date range."""

    async def create(self, booking: Booking) -> Booking:
        """
        Persist one booking.

        Raises SlotConflictError when its conflict key is already taken and
        BookingStoreError for transport or storage failures.
        """


class BookingService:
    """
    Orchestrates booking retrieval, slot calculation and booking creation.
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        template: WeeklyScheduleTemplate,
        slot_generator: SlotGenerator,
        resolver: AvailabilityResolver,
    ) -> None:
        for rule in template.rules():
            slot_generator.check_rule(rule)

        self._store = store
        self.template = template
        self.slot_generator = slot_generator
        self.resolver = resolver

    async def fetch_bookings(self, *, day: Date) -> List[Booking]:
        """Fetch the bookings of a single day."""
        return await self._store.list_bookings(start=day, end=day)

    def calculate_slots(
        self,
        *,
        day: Date,
        period: Period,
        session_type: SessionType,
        bookings: Sequence[Booking],
    ) -> List[TimeSlot]:
        """
        Generate candidate times and resolve them against a bookings snapshot.

        Returns an empty list when the day is closed or the session type is not
        offered in the period.
        """
        if period not in self.template.periods_for(day.weekday(), session_type):
            return []

        rule = self.template.rule_for_date(day)
        candidates = self.slot_generator.generate(period, rule, session_type)
        return self.resolver.resolve(day, period, session_type, candidates, bookings)

    async def find_slots(
        self,
        *,
        day: Date,
        period: Period,
        session_type: SessionType,
    ) -> List[TimeSlot]:
        """Fetch current bookings and compute the slots of a period."""
        bookings = await self.fetch_bookings(day=day)
        return self.calculate_slots(
            day=day,
            period=period,
            session_type=session_type,
            bookings=bookings,
        )

    async def book(self, booking: Booking) -> Booking:
        """
        Create a booking if its slot is still free.

        The slot is re-checked against a fresh snapshot first; the store's own
        uniqueness check still decides races lost after that point.

        Raises:
            SlotConflictError: If the provider is already booked at the slot
            BookingStoreError: If the store cannot be read or written
        """
        bookings = await self.fetch_bookings(day=booking.date)

        if not self.resolver.is_available(
            booking.date,
            booking.period,
            booking.time,
            booking.provider,
            bookings,
        ):
            logger.warning("Slot already taken: %s", booking.conflict_key)
            raise SlotConflictError(
                f"{booking.provider.label} is no longer available on "
                f"{booking.date} at {booking.time}",
                key=booking.conflict_key,
            )

        created = await self._store.create(booking)
        logger.info("Booking %s created: %s", created.id, created.format_display())
        return created

    async def agenda(
        self,
        *,
        day: Date,
        provider: Optional[Provider] = None,
    ) -> List[Booking]:
        """Bookings of a day ordered by time, optionally for one provider."""
        bookings = await self.fetch_bookings(day=day)
        if provider is not None:
            bookings = [b for b in bookings if b.provider == provider]
        return sorted(bookings, key=lambda b: (b.time, b.provider.value))

    async def booked_dates(self, *, start: Date, end: Date) -> List[Date]:
        """Distinct days between start and end (inclusive) holding bookings."""
        bookings = await self._store.list_bookings(start=start, end=end)
        return sorted({b.date for b in bookings})
