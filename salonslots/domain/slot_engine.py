"""
Core business logic for computing bookable slots.

This is the heart of the application - pure domain logic without any
external dependencies (no database, no clock, no I/O). Every call reads
only its arguments and returns a fresh list, so an engine can be shared
freely between threads.
"""

import logging
from datetime import date
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from pendulum import DateTime

from .calendar import DEFAULT_TIMEZONE, SalonCalendar
from .exceptions import InvalidInputError
from .models import (
    Appointment,
    ProviderSchedule,
    ServiceVariant,
    Slot,
    TimeRange,
    WallClockWindow,
    WorkingHours,
)

logger = logging.getLogger(__name__)

DEFAULT_STEP_MINUTES = 15
DEFAULT_HORIZON_DAYS = 30
MAX_HORIZON_DAYS = 90


class SlotEngine:
    """
    Computes the bookable slots of one provider on one day.

    Algorithm:
    1. Resolve the shifts for the target date in the salon timezone
    2. Walk candidate start minutes on a fixed step grid, shift by shift
    3. Drop candidates overlapping a break (wall-clock minutes)
    4. Drop candidates whose instants do not read back as the same
       wall-clock window (daylight-saving gaps and folds)
    5. Drop candidates overlapping time-off or blackouts (instants)
    6. Drop candidates overlapping a blocking appointment (instants)

    All overlap tests are half-open, so back-to-back bookings are allowed.
    """

    def __init__(self, calendar: SalonCalendar, step_minutes: int = DEFAULT_STEP_MINUTES):
        if not isinstance(step_minutes, int) or isinstance(step_minutes, bool) or step_minutes <= 0:
            raise InvalidInputError(f"step_minutes must be a positive integer, got {step_minutes!r}")

        self.calendar = calendar
        self.step_minutes = step_minutes

    def compute_slots(
        self,
        schedule: ProviderSchedule,
        variant: ServiceVariant,
        target_date: date,
        appointments: Sequence[Appointment] = (),
        extra_blackouts: Sequence[TimeRange] = (),
        not_before: Optional[DateTime] = None
    ) -> List[Slot]:
        """
        Compute all bookable slots for ``target_date``.

        Args:
            schedule: The provider's weekly hours, time-off and overrides
            variant: Service variant whose effective duration is booked
            target_date: Civil date in the salon timezone
            appointments: Existing bookings of the provider
            extra_blackouts: Additional blocked instants (e.g. salon closures)
            not_before: Drop slots starting at or before this instant

        Returns:
            Slots in chronological order. An empty list means no availability.

        Raises:
            InvalidInputError: If the variant's effective duration is not positive
        """
        duration = self.effective_duration(variant)

        shifts = self.resolve_working_hours(schedule, target_date)
        if not shifts:
            return []

        time_off = list(schedule.time_off) + list(extra_blackouts)
        taken = self._blocking_appointments(appointments)

        slots: List[Slot] = []
        candidates = 0

        for hours in shifts:
            for minute in self._candidate_minutes(hours, duration):
                candidates += 1

                if self._overlaps_break(hours.breaks, minute, minute + duration):
                    continue

                start = self.calendar.instant_at(target_date, minute)
                window = TimeRange(start=start, end=start.add(minutes=duration))

                if not self._matches_wall_clock(target_date, window, minute, duration):
                    continue

                if not_before is not None and window.start <= not_before:
                    continue

                if self._overlaps_any(window, time_off):
                    continue

                if self._overlaps_any(window, taken):
                    continue

                slots.append(Slot(start=window.start, end=window.end))

        logger.debug(
            "Computed %d slot(s) from %d candidate(s) in %d shift(s) for %s (%s, %d min, step %d)",
            len(slots), candidates, len(shifts), target_date, self.calendar.timezone,
            duration, self.step_minutes,
        )
        return slots

    def resolve_working_hours(
        self,
        schedule: ProviderSchedule,
        target_date: date
    ) -> Tuple[WorkingHours, ...]:
        """
        Look up the shifts for ``target_date``, ordered by start.

        Returns an empty tuple when the provider does not work that day.
        """
        weekday = self.calendar.weekday_key(target_date)
        shifts = schedule.hours_for(target_date, weekday)

        if not shifts:
            logger.debug("No working hours for %s (%s)", target_date, weekday)

        return shifts

    def is_available(
        self,
        schedule: ProviderSchedule,
        variant: ServiceVariant,
        start: DateTime,
        appointments: Sequence[Appointment] = (),
        extra_blackouts: Sequence[TimeRange] = (),
        not_before: Optional[DateTime] = None
    ) -> bool:
        """
        Re-validate a chosen slot start against the same grid and filters.

        Used right before a booking is committed, since the slot list a
        client saw may be stale by then.
        """
        target_date = self.calendar.local_date(start)
        slots = self.compute_slots(
            schedule,
            variant,
            target_date,
            appointments=appointments,
            extra_blackouts=extra_blackouts,
            not_before=not_before,
        )
        return any(slot.start == start for slot in slots)

    def next_available(
        self,
        schedule: ProviderSchedule,
        variant: ServiceVariant,
        from_date: date,
        appointments: Sequence[Appointment] = (),
        extra_blackouts: Sequence[TimeRange] = (),
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        not_before: Optional[DateTime] = None
    ) -> Optional[Slot]:
        """
        Find the earliest slot within ``horizon_days`` days from ``from_date``.
        """
        if not isinstance(horizon_days, int) or not 1 <= horizon_days <= MAX_HORIZON_DAYS:
            raise InvalidInputError(
                f"horizon_days must be between 1 and {MAX_HORIZON_DAYS}, got {horizon_days!r}"
            )

        current = self.calendar.day_start(from_date)

        for _ in range(horizon_days):
            slots = self.compute_slots(
                schedule,
                variant,
                current.date(),
                appointments=appointments,
                extra_blackouts=extra_blackouts,
                not_before=not_before,
            )
            if slots:
                return slots[0]

            current = current.add(days=1)

        return None

    @staticmethod
    def effective_duration(variant: ServiceVariant) -> int:
        duration = variant.effective_duration_min
        if duration <= 0:
            raise InvalidInputError(
                f"Effective duration of variant {variant.name or '<unnamed>'} must be positive"
            )
        return duration

    def _candidate_minutes(self, hours: WorkingHours, duration: int) -> Iterator[int]:
        """
        Yield candidate start minutes ``m`` with ``m + duration <= end``.
        """
        last_start = hours.end.minutes - duration
        return iter(range(hours.start.minutes, last_start + 1, self.step_minutes))

    def _matches_wall_clock(
        self,
        target_date: date,
        window: TimeRange,
        start_min: int,
        duration: int
    ) -> bool:
        """
        Check that a candidate's instants read back as its wall-clock window.

        Args:
            target_date: Civil date the candidate belongs to
            window: Candidate instants, exactly ``duration`` minutes long
            start_min: Wall-clock start minute of the candidate
            duration: Effective duration in minutes

        Returns:
            False when the start falls into a daylight-saving gap or the
            window straddles a gap or fold, True otherwise
        """
        reads_start = self.calendar.wall_clock_minutes(target_date, window.start)
        # Read the end off the slot's last minute, so a slot may end exactly at a transition.
        reads_end = self.calendar.wall_clock_minutes(target_date, window.end.subtract(minutes=1)) + 1

        if reads_start != start_min or reads_end != start_min + duration:
            logger.debug(
                "Skipping %s - %s: crosses a daylight-saving transition",
                window.start, window.end,
            )
            return False
        return True

    @staticmethod
    def _overlaps_break(
        breaks: Iterable[WallClockWindow],
        start_min: int,
        end_min: int
    ) -> bool:
        return any(bw.overlaps_minutes(start_min, end_min) for bw in breaks)

    @staticmethod
    def _overlaps_any(window: TimeRange, ranges: Iterable[TimeRange]) -> bool:
        return any(window.overlaps(other) for other in ranges)

    @staticmethod
    def _blocking_appointments(appointments: Iterable[Appointment]) -> List[TimeRange]:
        """Time ranges of the appointments that still block time."""
        taken: List[TimeRange] = []

        for appointment in appointments:
            if not appointment.blocks_time:
                logger.debug(
                    "Skipping %s appointment %s - %s",
                    appointment.status, appointment.start, appointment.end,
                )
                continue
            taken.append(appointment.time_range)

        return taken


def compute_slots(
    schedule: ProviderSchedule,
    variant: ServiceVariant,
    target_date: date,
    existing_appointments: Sequence[Appointment] = (),
    salon_timezone: str = DEFAULT_TIMEZONE,
    step_minutes: int = DEFAULT_STEP_MINUTES
) -> List[Slot]:
    """
    Compute the bookable slots of one provider on one day.

    Convenience wrapper building a ``SlotEngine`` for a single call.

    Raises:
        TimezoneResolutionError: If ``salon_timezone`` is unknown
        InvalidInputError: If the step or effective duration is not positive
    """
    engine = SlotEngine(SalonCalendar(salon_timezone), step_minutes=step_minutes)
    return engine.compute_slots(schedule, variant, target_date, appointments=existing_appointments)
