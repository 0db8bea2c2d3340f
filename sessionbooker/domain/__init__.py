"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityResolver
from .models import (
    Booking,
    ConflictKey,
    ContactInfo,
    FixedTimeRule,
    Period,
    Provider,
    SessionType,
    TimeSlot,
    WeekdayRule,
)
from .schedule import WeeklyScheduleTemplate
from .slot_generator import SlotGenerator

__all__ = [
    "AvailabilityResolver",
    "Booking",
    "ConflictKey",
    "ContactInfo",
    "FixedTimeRule",
    "Period",
    "Provider",
    "SessionType",
    "SlotGenerator",
    "TimeSlot",
    "WeekdayRule",
    "WeeklyScheduleTemplate",
]
