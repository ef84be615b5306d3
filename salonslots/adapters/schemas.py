"""
Boundary schemas for raw salon data.

Documents coming from files (or any other collaborator) are validated once
here with pydantic and turned into the frozen domain records the engine
works with. Nothing past this module has to guess at field names or types.
"""

from datetime import date
from typing import Any, Dict, List, Optional

import pendulum
from pydantic import (
    AwareDatetime,
    BaseModel,
    Field,
    NonNegativeInt,
    ValidationError,
    field_validator,
    model_validator,
)

from ..domain.exceptions import InvalidInputError, NotFoundError
from ..domain.models import (
    WEEKDAY_KEYS,
    Appointment,
    ProviderSchedule,
    ServiceVariant,
    TimeRange,
    WallClockMinutes,
    WallClockWindow,
    WorkingHours,
)


class BreakModel(BaseModel):
    """A break inside a working day, in local ``HH:MM``."""
    start: str
    end: str

    @model_validator(mode="after")
    def validate_window(self) -> "BreakModel":
        self.to_domain()
        return self

    def to_domain(self) -> WallClockWindow:
        return WallClockWindow.parse(self.start, self.end)


class WorkingDayModel(BaseModel):
    """Working hours of one day. Omitting start or end means a day off."""
    start: Optional[str] = None
    end: Optional[str] = None
    breaks: List[BreakModel] = Field(default_factory=list)

    @field_validator("start", "end")
    @classmethod
    def validate_wall_clock(cls, value: Optional[str]) -> Optional[str]:
        """Ensure times are HH:MM strings."""
        if value:
            WallClockMinutes.parse(value)
        return value

    @model_validator(mode="after")
    def validate_order(self) -> "WorkingDayModel":
        """Ensure the day opens before it closes."""
        self.to_domain()
        return self

    def to_domain(self) -> WorkingHours:
        return WorkingHours.parse(
            self.start,
            self.end,
            breaks=[(b.start, b.end) for b in self.breaks],
        )


class IntervalModel(BaseModel):
    """An absolute interval such as approved time-off or a salon blackout."""
    start: AwareDatetime
    end: AwareDatetime
    reason: str = ""

    @model_validator(mode="after")
    def validate_order(self) -> "IntervalModel":
        if self.start >= self.end:
            raise ValueError(f"Interval start {self.start} must be before end {self.end}")
        return self

    def to_domain(self) -> TimeRange:
        return TimeRange(start=pendulum.instance(self.start), end=pendulum.instance(self.end))


_WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Three-letter keys and full day names, both lower case.
_WEEKDAY_ALIASES = {
    **{key: key for key in WEEKDAY_KEYS},
    **dict(zip(_WEEKDAY_NAMES, WEEKDAY_KEYS)),
}


def _as_shift_list(value: Any) -> Any:
    """A day is either one working-day mapping or a list of shifts."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class ProviderModel(BaseModel):
    """A service provider and their schedule."""
    id: str
    name: str = ""
    active: bool = True
    working_hours: Dict[str, List[WorkingDayModel]] = Field(default_factory=dict)
    custom_days: Dict[date, List[WorkingDayModel]] = Field(default_factory=dict)
    time_off: List[IntervalModel] = Field(default_factory=list)

    @field_validator("working_hours", mode="before")
    @classmethod
    def normalize_weekdays(cls, value: Any) -> Any:
        """
        Map weekday keys to ``mon`` .. ``sun``.

        Keys are case-insensitive three-letter abbreviations or full day
        names. Anything else is rejected, as are two keys naming the same day.
        """
        if not isinstance(value, dict):
            return value

        normalized: Dict[str, Any] = {}
        for key, day in value.items():
            weekday = _WEEKDAY_ALIASES.get(str(key).strip().lower())
            if weekday is None:
                raise ValueError(f"Unknown weekday key: {key!r}")
            if weekday in normalized:
                raise ValueError(f"Weekday {weekday!r} is given more than once (as {key!r})")
            normalized[weekday] = _as_shift_list(day)
        return normalized

    @field_validator("custom_days", mode="before")
    @classmethod
    def wrap_custom_days(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {day: _as_shift_list(hours) for day, hours in value.items()}

    @model_validator(mode="after")
    def validate_shifts(self) -> "ProviderModel":
        """Ensure shifts on the same day do not overlap."""
        self.to_schedule()
        return self

    def display_name(self) -> str:
        return self.name or self.id

    def working_days(self) -> List[str]:
        """Weekday keys with at least one open shift, Monday first."""
        return [
            key for key in WEEKDAY_KEYS
            if any(day.start and day.end for day in self.working_hours.get(key, []))
        ]

    def to_schedule(self) -> ProviderSchedule:
        return ProviderSchedule(
            working_hours={
                key: tuple(day.to_domain() for day in days)
                for key, days in self.working_hours.items()
            },
            time_off=tuple(interval.to_domain() for interval in self.time_off),
            custom_days={
                day: tuple(hours.to_domain() for hours in shifts)
                for day, shifts in self.custom_days.items()
            },
            active=self.active,
            provider_id=self.id,
        )


class VariantModel(BaseModel):
    """A bookable variant of a service."""
    name: str
    duration_min: NonNegativeInt
    buffer_before_min: NonNegativeInt = 0
    buffer_after_min: NonNegativeInt = 0

    def to_domain(self) -> ServiceVariant:
        return ServiceVariant(
            duration_min=self.duration_min,
            buffer_before_min=self.buffer_before_min,
            buffer_after_min=self.buffer_after_min,
            name=self.name,
        )


class ServiceModel(BaseModel):
    """A service with its variants."""
    id: str
    name: str = ""
    variants: List[VariantModel] = Field(default_factory=list)

    def find_variant(self, variant_name: str) -> VariantModel:
        for variant in self.variants:
            if variant.name.lower() == variant_name.lower():
                return variant
        raise NotFoundError(f"Variant '{variant_name}' not found for service '{self.id}'")


class AppointmentModel(BaseModel):
    """An existing booking."""
    provider_id: str
    start: AwareDatetime
    end: AwareDatetime
    status: Optional[str] = None

    @model_validator(mode="after")
    def validate_order(self) -> "AppointmentModel":
        if self.start >= self.end:
            raise ValueError(f"Appointment start {self.start} must be before end {self.end}")
        return self

    def to_domain(self) -> Appointment:
        return Appointment(
            start=pendulum.instance(self.start),
            end=pendulum.instance(self.end),
            status=self.status,
        )


class SalonDataModel(BaseModel):
    """Root document holding providers, services, bookings and blackouts."""
    providers: List[ProviderModel] = Field(default_factory=list)
    services: List[ServiceModel] = Field(default_factory=list)
    appointments: List[AppointmentModel] = Field(default_factory=list)
    blackouts: List[IntervalModel] = Field(default_factory=list)

    @field_validator("providers", "services")
    @classmethod
    def validate_unique_ids(cls, value: List[Any]) -> List[Any]:
        """Ensure provider and service ids are unique."""
        seen: set[str] = set()
        for item in value:
            if item.id in seen:
                raise ValueError(f"Duplicate id detected: {item.id}")
            seen.add(item.id)
        return value


def parse_salon_data(data: Any) -> SalonDataModel:
    """
    Validate a raw salon document.

    Raises:
        InvalidInputError: If the document does not match the schema
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidInputError("Salon data must contain a mapping at the root level.")

    try:
        return SalonDataModel.model_validate(data)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid salon data: {exc}") from exc
