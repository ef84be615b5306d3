"""
Domain-specific exception hierarchy for the slot engine.
"""


class SlotEngineError(Exception):
    """Base class for all application-level errors."""


class InvalidInputError(SlotEngineError, ValueError):
    """Raised when schedule, variant or interval data is malformed."""


class TimezoneResolutionError(InvalidInputError):
    """Raised when a salon timezone name cannot be resolved."""


class NotFoundError(SlotEngineError, LookupError):
    """Raised when a provider, service or variant does not exist."""


class SlotUnavailableError(SlotEngineError):
    """Raised when a requested slot is no longer bookable."""
