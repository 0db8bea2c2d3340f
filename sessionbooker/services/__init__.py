"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingService, BookingStoreProtocol
from .booking_wizard import (
    BookingWizard,
    Confirmed,
    EnterContactInfo,
    SelectDate,
    SelectPeriodAndTime,
    SelectProvider,
    SelectSessionType,
    WizardState,
)

__all__ = [
    "BookingService",
    "BookingStoreProtocol",
    "BookingWizard",
    "Confirmed",
    "EnterContactInfo",
    "SelectDate",
    "SelectPeriodAndTime",
    "SelectProvider",
    "SelectSessionType",
    "WizardState",
]
