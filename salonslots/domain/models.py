"""
Domain models for provider schedules, service variants and bookable slots.

Two kinds of time live side by side here and are never mixed:

* ``WallClockMinutes`` - minutes since local midnight in the salon timezone,
  used for working hours and breaks.
* instants - timezone-aware ``pendulum.DateTime`` values, used for time-off,
  appointments and the slots themselves.

Conversion between them happens only in ``SalonCalendar``.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

from pendulum import DateTime

from .exceptions import InvalidInputError

WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")  # 0=Monday

MINUTES_PER_DAY = 24 * 60

_HHMM_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")

# Instants are timezone-aware pendulum DateTimes.
Instant = DateTime


@dataclass(frozen=True, order=True)
class WallClockMinutes:
    """
    Minutes since local midnight, as read off a wall clock in the salon.

    ``24:00`` is accepted so that a shift can run until the end of the day.
    """
    minutes: int

    def __post_init__(self):
        if not 0 <= self.minutes <= MINUTES_PER_DAY:
            raise InvalidInputError(
                f"Wall-clock minutes must be between 0 and {MINUTES_PER_DAY}, got {self.minutes}"
            )

    @classmethod
    def parse(cls, text: str) -> "WallClockMinutes":
        """Parse an ``HH:MM`` string."""
        match = _HHMM_PATTERN.match(str(text).strip())
        if not match:
            raise InvalidInputError(f"Expected HH:MM wall-clock time, got {text!r}")

        hours, minutes = int(match.group(1)), int(match.group(2))
        if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
            raise InvalidInputError(f"Invalid wall-clock time: {text!r}")

        return cls(hours * 60 + minutes)

    def __str__(self) -> str:
        return f"{self.minutes // 60:02d}:{self.minutes % 60:02d}"


@dataclass(frozen=True)
class WallClockWindow:
    """
    A half-open local time window ``[start, end)``, e.g. a lunch break.
    """
    start: WallClockMinutes
    end: WallClockMinutes

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInputError(f"Window start {self.start} must be before end {self.end}")

    @classmethod
    def parse(cls, start: str, end: str) -> "WallClockWindow":
        return cls(start=WallClockMinutes.parse(start), end=WallClockMinutes.parse(end))

    def overlaps_minutes(self, start_min: int, end_min: int) -> bool:
        """Half-open overlap against a ``[start_min, end_min)`` minute window."""
        return start_min < self.end.minutes and self.start.minutes < end_min

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end instant.

    Invariant: start must be before end.
    """
    start: Instant
    end: Instant

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInputError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Touching ranges (one ends exactly when the other starts) do not overlap.
        """
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class WorkingHours:
    """
    Working hours for one day in salon local time.

    A record without both ``start`` and ``end`` means the provider is off.
    """
    start: Optional[WallClockMinutes] = None
    end: Optional[WallClockMinutes] = None
    breaks: Tuple[WallClockWindow, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "breaks", tuple(self.breaks))
        if self.start is not None and self.end is not None and self.start >= self.end:
            raise InvalidInputError(
                f"Working hours start {self.start} must be before end {self.end}"
            )

    @classmethod
    def parse(
        cls,
        start: Optional[str],
        end: Optional[str],
        breaks: Iterable[Tuple[str, str]] = ()
    ) -> "WorkingHours":
        """Build working hours from ``HH:MM`` strings."""
        return cls(
            start=WallClockMinutes.parse(start) if start else None,
            end=WallClockMinutes.parse(end) if end else None,
            breaks=tuple(WallClockWindow.parse(s, e) for s, e in breaks),
        )

    @property
    def is_open(self) -> bool:
        return self.start is not None and self.end is not None

    def window_minutes(self) -> int:
        """Length of the working window in minutes (0 when closed)."""
        if not self.is_open:
            return 0
        return self.end.minutes - self.start.minutes


Shifts = Tuple[WorkingHours, ...]


def _as_shifts(value: Union[WorkingHours, Iterable[WorkingHours]], label: object) -> Shifts:
    """
    Normalize one day's hours to its open shifts, ordered by start.

    Shifts may touch but must not overlap.
    """
    if isinstance(value, WorkingHours):
        value = (value,)

    shifts = tuple(sorted((hours for hours in value if hours.is_open), key=lambda hours: hours.start))
    for previous, current in zip(shifts, shifts[1:]):
        if current.start < previous.end:
            raise InvalidInputError(
                f"Overlapping shifts on {label}: {previous.start}-{previous.end} "
                f"and {current.start}-{current.end}"
            )
    return shifts


@dataclass(frozen=True)
class ProviderSchedule:
    """
    Weekly working hours, approved time-off and date-specific overrides
    for a single provider.

    Each weekday or custom date holds one or more shifts (e.g. a morning and
    an afternoon shift). A single ``WorkingHours`` is accepted as one shift.
    Closed entries are dropped, so an empty tuple means a day off.
    """
    working_hours: Mapping[str, Shifts] = field(default_factory=dict)
    time_off: Tuple[TimeRange, ...] = ()
    custom_days: Mapping[date, Shifts] = field(default_factory=dict)
    active: bool = True
    provider_id: str = ""

    def __post_init__(self):
        unknown = [key for key in self.working_hours if key not in WEEKDAY_KEYS]
        if unknown:
            raise InvalidInputError(
                f"Unknown weekday key(s) {unknown}; expected one of {', '.join(WEEKDAY_KEYS)}"
            )
        object.__setattr__(self, "working_hours", MappingProxyType(
            {key: _as_shifts(hours, key) for key, hours in self.working_hours.items()}
        ))
        object.__setattr__(self, "custom_days", MappingProxyType(
            {day: _as_shifts(hours, day) for day, hours in self.custom_days.items()}
        ))
        object.__setattr__(self, "time_off", tuple(self.time_off))

    def hours_for(self, day: date, weekday_key: str) -> Shifts:
        """
        Resolve the shifts that apply on ``day``.

        A custom entry for the exact date wins over the weekly entry, even
        when it is empty.
        """
        if not self.active:
            return ()
        if day in self.custom_days:
            return self.custom_days[day]
        return self.working_hours.get(weekday_key, ())


@dataclass(frozen=True)
class ServiceVariant:
    """
    A bookable variant of a service with its duration and buffers.
    """
    duration_min: int
    buffer_before_min: int = 0
    buffer_after_min: int = 0
    name: str = ""

    def __post_init__(self):
        for label, value in (
            ("duration_min", self.duration_min),
            ("buffer_before_min", self.buffer_before_min),
            ("buffer_after_min", self.buffer_after_min),
        ):
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise InvalidInputError(f"{label} must be a non-negative integer, got {value!r}")

    @property
    def effective_duration_min(self) -> int:
        """Occupied minutes: duration plus both buffers."""
        return self.duration_min + self.buffer_before_min + self.buffer_after_min


CANCELLED_STATUS_PREFIX = "cancelled"


@dataclass(frozen=True)
class Appointment:
    """
    An existing booking for the provider.

    Cancelled appointments (any status starting with ``cancelled``) stay in
    the booking store but no longer block time.
    """
    start: Instant
    end: Instant
    status: Optional[str] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInputError(
                f"Appointment start {self.start} must be before end {self.end}"
            )

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    @property
    def blocks_time(self) -> bool:
        return not (self.status or "").lower().startswith(CANCELLED_STATUS_PREFIX)


@dataclass(frozen=True)
class Slot:
    """
    A bookable slot, expressed as two precise instants.
    """
    start: Instant
    end: Instant

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def to_dict(self) -> Dict[str, str]:
        """Serialize as ISO-8601 UTC strings."""
        return {
            "start": self.start.in_timezone("UTC").to_iso8601_string(),
            "end": self.end.in_timezone("UTC").to_iso8601_string(),
        }

    def format_display(self, timezone: str) -> str:
        """
        Format the slot for display in the salon timezone.
        Format: Weekday, DD.MM.YYYY | HH:MM – HH:MM (N min)
        """
        start = self.start.in_timezone(timezone)
        end = self.end.in_timezone(timezone)

        weekday = start.format("dddd")
        date_str = start.format("DD.MM.YYYY")
        time_str = f"{start.format('HH:mm')} – {end.format('HH:mm')}"

        return f"{weekday}, {date_str} | {time_str} ({self.duration_minutes()} min)"
