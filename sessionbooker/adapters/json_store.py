"""
Booking record store backed by a local JSON file.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from filelock import FileLock, Timeout
from pendulum import Date

from ..domain.exceptions import BookingStoreError, SlotConflictError
from ..domain.models import Booking
from .memory_store import filter_by_range

logger = logging.getLogger(__name__)


class JsonFileBookingStore:
    """
    Stores bookings as a JSON array of flat booking records.

    The file is created on the first booking and always replaced whole
    through a uniquely named temporary file. Creates hold an exclusive lock
    on ``<name>.lock`` from the read until the replace, so several stores or
    processes sharing one file never drop each other's bookings.
    """

    def __init__(self, path: Path, lock_timeout: float = 10.0):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    async def list_bookings(
        self,
        start: Optional[Date] = None,
        end: Optional[Date] = None,
    ) -> List[Booking]:
        bookings = await asyncio.to_thread(self._read)
        return filter_by_range(bookings, start, end)

    async def create(self, booking: Booking) -> Booking:
        await asyncio.to_thread(self._create_locked, booking)
        logger.debug("Stored booking %s in %s", booking.id, self.path)
        return booking

    def _create_locked(self, booking: Booking) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BookingStoreError(f"Could not create {self.path.parent}: {exc}") from exc

        try:
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                bookings = self._read()

                key = booking.conflict_key
                if any(existing.conflict_key == key for existing in bookings):
                    raise SlotConflictError(f"Slot already booked: {key}", key=key)

                bookings.append(booking)
                self._write(bookings)
        except Timeout as exc:
            raise BookingStoreError(f"Timed out waiting for the lock on {self.path}") from exc

    def _read(self) -> List[Booking]:
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise BookingStoreError(f"Could not read bookings from {self.path}: {exc}") from exc

        if not isinstance(records, list):
            raise BookingStoreError(f"{self.path} must contain a JSON array of bookings")

        try:
            return [Booking.from_record(record) for record in records]
        except (TypeError, ValueError) as exc:
            raise BookingStoreError(f"Invalid booking record in {self.path}: {exc}") from exc

    def _write(self, bookings: List[Booking]) -> None:
        records: List[Dict[str, Any]] = [booking.to_record() for booking in bookings]
        tmp_name: Optional[str] = None

        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f"{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump(records, tmp, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise BookingStoreError(f"Could not write bookings to {self.path}: {exc}") from exc
