"""
Adapters layer - Booking record stores.
"""

from .json_store import JsonFileBookingStore
from .memory_store import InMemoryBookingStore
from .rest_store import RestBookingStore

__all__ = ["InMemoryBookingStore", "JsonFileBookingStore", "RestBookingStore"]
