"""
Application services for finding and re-validating bookable slots.

The service coordinates fetching schedules, variants and bookings via
collaborator adapters and delegates the actual slot computation to the
domain-level ``SlotEngine``. This keeps the CLI thin and improves
testability by allowing the collaborators to be stubbed via simple protocols.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Protocol

from pendulum import DateTime

from ..domain.exceptions import SlotUnavailableError
from ..domain.models import Appointment, ProviderSchedule, ServiceVariant, Slot, TimeRange
from ..domain.slot_engine import DEFAULT_HORIZON_DAYS, SlotEngine

logger = logging.getLogger(__name__)


class ProviderLookup(Protocol):
    """Supplies provider schedules."""

    def get_schedule(self, provider_id: str) -> ProviderSchedule:
        """Return the schedule of a provider."""


class VariantLookup(Protocol):
    """Supplies service variants."""

    def get_variant(self, service_id: str, variant_name: str) -> ServiceVariant:
        """Return a variant of a service."""


class AppointmentQuery(Protocol):
    """Supplies existing bookings."""

    def get_appointments(self, provider_id: str, window: TimeRange) -> List[Appointment]:
        """Return the provider's appointments overlapping the window."""


class BlackoutQuery(Protocol):
    """Supplies salon-wide blocked periods."""

    def get_blackouts(self, window: TimeRange) -> List[TimeRange]:
        """Return blackouts overlapping the window."""


class AvailabilityService:
    """
    Orchestrates data retrieval and slot computation for one provider.

    Slots are computed against a snapshot of the bookings read at call time.
    Two clients can still race for the same slot, which is why
    ``validate_booking`` must be called again right before committing.
    """

    def __init__(
        self,
        providers: ProviderLookup,
        variants: VariantLookup,
        appointments: AppointmentQuery,
        engine: SlotEngine,
        blackouts: Optional[BlackoutQuery] = None,
        hide_past_slots: bool = True,
    ) -> None:
        self._providers = providers
        self._variants = variants
        self._appointments = appointments
        self._blackouts = blackouts
        self._engine = engine
        self._hide_past_slots = hide_past_slots

    @property
    def engine(self) -> SlotEngine:
        return self._engine

    def find_slots(
        self,
        *,
        provider_id: str,
        service_id: str,
        variant_name: str,
        target_date: date,
        now: Optional[DateTime] = None,
    ) -> List[Slot]:
        """
        Retrieve schedule, variant and bookings, then compute the day's slots.
        """
        schedule = self._providers.get_schedule(provider_id)
        variant = self._variants.get_variant(service_id, variant_name)
        window = self._engine.calendar.day_bounds(target_date)

        slots = self._engine.compute_slots(
            schedule,
            variant,
            target_date,
            appointments=self._appointments.get_appointments(provider_id, window),
            extra_blackouts=self._fetch_blackouts(window),
            not_before=self._cutoff(now),
        )

        logger.info(
            "Found %d slot(s) for provider=%s service=%s variant=%s on %s",
            len(slots), provider_id, service_id, variant_name, target_date,
        )
        return slots

    def next_available(
        self,
        *,
        provider_id: str,
        service_id: str,
        variant_name: str,
        from_date: date,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        now: Optional[DateTime] = None,
    ) -> Optional[Slot]:
        """Find the provider's earliest slot within the horizon."""
        schedule = self._providers.get_schedule(provider_id)
        variant = self._variants.get_variant(service_id, variant_name)

        calendar = self._engine.calendar
        window = TimeRange(
            start=calendar.day_start(from_date),
            end=calendar.day_start(from_date).add(days=horizon_days),
        )

        slot = self._engine.next_available(
            schedule,
            variant,
            from_date,
            appointments=self._appointments.get_appointments(provider_id, window),
            extra_blackouts=self._fetch_blackouts(window),
            horizon_days=horizon_days,
            not_before=self._cutoff(now),
        )

        if slot is None:
            logger.info(
                "No slot for provider=%s within %d day(s) from %s",
                provider_id, horizon_days, from_date,
            )
        return slot

    def validate_booking(
        self,
        *,
        provider_id: str,
        service_id: str,
        variant_name: str,
        start: DateTime,
        now: Optional[DateTime] = None,
    ) -> Slot:
        """
        Re-validate a chosen slot against fresh bookings.

        Returns:
            The slot that may be booked

        Raises:
            SlotUnavailableError: If the slot is in the past, off the grid,
                outside working hours or conflicts with a break, time-off,
                blackout or booking
        """
        schedule = self._providers.get_schedule(provider_id)
        variant = self._variants.get_variant(service_id, variant_name)

        cutoff = self._cutoff(now)
        if cutoff is not None and start <= cutoff:
            raise SlotUnavailableError(f"Slot {start.to_iso8601_string()} is in the past")

        calendar = self._engine.calendar
        window = calendar.day_bounds(calendar.local_date(start))

        available = self._engine.is_available(
            schedule,
            variant,
            start,
            appointments=self._appointments.get_appointments(provider_id, window),
            extra_blackouts=self._fetch_blackouts(window),
            not_before=cutoff,
        )
        if not available:
            logger.info("Slot %s for provider=%s no longer available", start, provider_id)
            raise SlotUnavailableError(
                f"Slot {start.to_iso8601_string()} is no longer available"
            )

        duration = self._engine.effective_duration(variant)
        return Slot(start=start, end=start.add(minutes=duration))

    def _fetch_blackouts(self, window: TimeRange) -> List[TimeRange]:
        if self._blackouts is None:
            return []
        return self._blackouts.get_blackouts(window)

    def _cutoff(self, now: Optional[DateTime]) -> Optional[DateTime]:
        if not self._hide_past_slots:
            return None
        return now if now is not None else self._engine.calendar.now()
