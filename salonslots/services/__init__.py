"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import (
    AppointmentQuery,
    AvailabilityService,
    BlackoutQuery,
    ProviderLookup,
    VariantLookup,
)

__all__ = [
    "AppointmentQuery",
    "AvailabilityService",
    "BlackoutQuery",
    "ProviderLookup",
    "VariantLookup",
]
