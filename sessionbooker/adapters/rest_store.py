"""
Booking record store backed by a PostgREST-style ``bookings`` table.
"""

import asyncio
import logging
from typing import Any, List, Optional, Tuple

import requests
from pendulum import Date

from ..domain.exceptions import BookingStoreError, SlotConflictError
from ..domain.models import Booking

logger = logging.getLogger(__name__)


class RestBookingStore:
    """
    Client for a REST table of bookings.

    The table must carry a unique constraint on (day, period, time,
    professional); the server answers a violation with HTTP 409, which is
    reported as ``SlotConflictError``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        table: str = "bookings",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the REST store.

        Args:
            base_url: Root of the REST API (e.g. https://example.org/rest/v1)
            api_key: Key sent as ``apikey`` and bearer token, if any
            table: Name of the bookings table
            timeout: Request timeout in seconds
            session: Optional requests session (defaults to a new one)
        """
        self.url = f"{base_url.rstrip('/')}/{table}"
        self.timeout = timeout
        self._http = session or requests.Session()
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["apikey"] = api_key
            self.headers["Authorization"] = f"Bearer {api_key}"

    async def list_bookings(
        self,
        start: Optional[Date] = None,
        end: Optional[Date] = None,
    ) -> List[Booking]:
        return await asyncio.to_thread(self._list, start, end)

    async def create(self, booking: Booking) -> Booking:
        return await asyncio.to_thread(self._create, booking)

    def _list(self, start: Optional[Date], end: Optional[Date]) -> List[Booking]:
        params: List[Tuple[str, str]] = [("select", "*")]
        if start is not None:
            params.append(("day", f"gte.{start.isoformat()}"))
        if end is not None:
            params.append(("day", f"lte.{end.isoformat()}"))
        params.append(("order", "day.asc,time.asc"))

        try:
            response = self._http.get(
                self.url,
                headers=self.headers,
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            records = response.json()
        except requests.exceptions.RequestException as e:
            raise BookingStoreError(f"Failed to fetch bookings: {e}") from e
        except ValueError as e:
            raise BookingStoreError(f"Invalid bookings response: {e}") from e

        return self._parse_records(records)

    def _create(self, booking: Booking) -> Booking:
        headers = dict(self.headers, Prefer="return=representation")

        try:
            response = self._http.post(
                self.url,
                headers=headers,
                json=booking.to_record(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise BookingStoreError(f"Failed to create booking: {e}") from e

        if response.status_code == 409:
            logger.warning("Store rejected %s as a duplicate", booking.conflict_key)
            raise SlotConflictError(
                f"Slot already booked: {booking.conflict_key}",
                key=booking.conflict_key,
            )

        try:
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise BookingStoreError(f"Failed to create booking: {e}") from e

        try:
            created = self._parse_records(response.json())
        except (ValueError, BookingStoreError):
            logger.debug("Could not parse created row, using submitted booking")
            created = []
        return created[0] if created else booking

    @staticmethod
    def _parse_records(records: Any) -> List[Booking]:
        """
        Parse the table rows into bookings.

        Response format: a JSON array of rows, one per booking
        """
        if not isinstance(records, list):
            raise BookingStoreError("Bookings response must be a JSON array")

        bookings: List[Booking] = []
        for record in records:
            try:
                bookings.append(Booking.from_record(record))
            except (TypeError, ValueError) as e:
                raise BookingStoreError(f"Invalid booking row {record!r}: {e}") from e
        return bookings
