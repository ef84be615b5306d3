"""
Domain layer - Pure business logic without external dependencies.
"""

from .calendar import SalonCalendar
from .models import (
    Appointment,
    ProviderSchedule,
    ServiceVariant,
    Slot,
    TimeRange,
    WallClockMinutes,
    WallClockWindow,
    WorkingHours,
)
from .slot_engine import SlotEngine, compute_slots

__all__ = [
    "Appointment",
    "ProviderSchedule",
    "SalonCalendar",
    "ServiceVariant",
    "Slot",
    "SlotEngine",
    "TimeRange",
    "WallClockMinutes",
    "WallClockWindow",
    "WorkingHours",
    "compute_slots",
]
