"""
Timezone handling for the salon's civil calendar.

``SalonCalendar`` is a small immutable value object that is handed to the
slot engine instead of relying on any process-wide timezone state. It is the
only place where wall-clock minutes are turned into instants.
"""

from dataclasses import dataclass
from datetime import date

import pendulum
from pendulum import DateTime

from .exceptions import TimezoneResolutionError
from .models import MINUTES_PER_DAY, WEEKDAY_KEYS, TimeRange

DEFAULT_TIMEZONE = "Europe/London"


def resolve_timezone(name: str):
    """
    Resolve an IANA zone name.

    Raises:
        TimezoneResolutionError: If the name is empty or unknown. There is
            no fallback zone.
    """
    if not isinstance(name, str) or not name.strip():
        raise TimezoneResolutionError(f"Timezone name must be a non-empty string, got {name!r}")

    try:
        return pendulum.timezone(name)
    except (ValueError, LookupError) as exc:
        raise TimezoneResolutionError(f"Unknown timezone: {name!r}") from exc


@dataclass(frozen=True)
class SalonCalendar:
    """
    Civil calendar of a salon in a fixed IANA timezone.
    """
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self):
        resolve_timezone(self.timezone)

    def day_start(self, day: date) -> DateTime:
        """Local midnight of ``day`` in the salon timezone."""
        return pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)

    def day_bounds(self, day: date) -> TimeRange:
        """
        The instants covering ``day`` from local midnight to the next one.

        On daylight-saving transition days this is 23 or 25 hours long.
        """
        start = self.day_start(day)
        return TimeRange(start=start, end=start.add(days=1))

    def weekday_key(self, day: date) -> str:
        """Weekday key (``mon`` .. ``sun``) of ``day`` in the salon timezone."""
        return WEEKDAY_KEYS[self.day_start(day).weekday()]

    def instant_at(self, day: date, minutes: int) -> DateTime:
        """
        Convert wall-clock minutes on ``day`` to an instant.

        The minutes are read as a local wall-clock time. ``24:00`` is the
        next local midnight. A time skipped by a spring-forward gap is moved
        forward by pendulum, and a repeated time during an autumn fold
        resolves to its later occurrence.
        """
        if minutes >= MINUTES_PER_DAY:
            return self.day_start(day).add(days=1)

        return pendulum.datetime(
            day.year, day.month, day.day,
            minutes // 60, minutes % 60,
            tz=self.timezone,
            fold=1,
        )

    def wall_clock_minutes(self, day: date, instant: DateTime) -> int:
        """Local wall-clock reading of ``instant`` in minutes since midnight of ``day``."""
        local = instant.in_timezone(self.timezone)
        days = local.date().toordinal() - day.toordinal()
        return days * MINUTES_PER_DAY + local.hour * 60 + local.minute

    def local_date(self, instant: DateTime) -> date:
        """The salon-local civil date an instant falls on."""
        return instant.in_timezone(self.timezone).date()

    def now(self) -> DateTime:
        return pendulum.now(self.timezone)
