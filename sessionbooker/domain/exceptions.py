"""
Domain-specific exception hierarchy for the session booking engine.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for all application-level errors."""


class SelectionError(BookingError):
    """Raised when a wizard input is inconsistent with the schedule or prior selections."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidStepError(SelectionError):
    """Raised when an operation is not valid in the wizard's current step."""


class SlotConflictError(BookingError):
    """Raised when the (date, period, time, provider) key is already taken."""

    def __init__(self, message: str, key=None):
        super().__init__(message)
        self.key = key


class BookingStoreError(BookingError):
    """Raised when bookings cannot be read from or written to the record store."""


class SubmissionInProgressError(BookingError):
    """Raised when a second submission is attempted while one is pending."""
