"""
Tests for the slot engine.
"""

from datetime import date

import pendulum
import pytest

from salonslots.domain.calendar import SalonCalendar
from salonslots.domain.exceptions import InvalidInputError, TimezoneResolutionError
from salonslots.domain.models import (
    Appointment,
    ProviderSchedule,
    ServiceVariant,
    TimeRange,
    WorkingHours,
)
from salonslots.domain.slot_engine import SlotEngine, compute_slots

TZ = "Europe/London"
MONDAY = date(2024, 11, 25)


def _at(text: str):
    return pendulum.parse(text, tz=TZ)


def _schedule(**kwargs) -> ProviderSchedule:
    hours = kwargs.pop("hours", WorkingHours.parse("09:00", "17:00"))
    return ProviderSchedule(working_hours={"mon": hours}, **kwargs)


def _starts(slots):
    return [slot.start.in_timezone(TZ).format("HH:mm") for slot in slots]


class TestComputeSlots:
    """Tests for the compute_slots entry point."""

    def test_full_day_without_bookings(self):
        """09:00-17:00 with 30 minute slots on a 30 minute grid."""
        slots = compute_slots(
            _schedule(),
            ServiceVariant(duration_min=30),
            MONDAY,
            [],
            salon_timezone=TZ,
            step_minutes=30,
        )

        assert len(slots) == 16
        assert _starts(slots)[0] == "09:00"
        assert _starts(slots)[-1] == "16:30"
        assert slots[-1].end == _at("2024-11-25 17:00")

    def test_appointment_excludes_only_its_slot(self):
        appointment = Appointment(start=_at("2024-11-25 12:00"), end=_at("2024-11-25 12:30"))

        slots = compute_slots(
            _schedule(),
            ServiceVariant(duration_min=30),
            MONDAY,
            [appointment],
            salon_timezone=TZ,
            step_minutes=30,
        )

        assert len(slots) == 15
        assert "12:00" not in _starts(slots)
        assert "11:30" in _starts(slots)
        assert "12:30" in _starts(slots)

    def test_break_excludes_every_intersecting_candidate(self):
        """A 45 minute service cannot start within 45 minutes before the break."""
        schedule = _schedule(hours=WorkingHours.parse("09:00", "17:00", breaks=[("13:00", "13:30")]))

        slots = compute_slots(
            schedule,
            ServiceVariant(duration_min=45),
            MONDAY,
            [],
            salon_timezone=TZ,
        )
        starts = _starts(slots)

        for excluded in ("12:30", "12:45", "13:00", "13:15"):
            assert excluded not in starts
        assert "12:15" in starts  # ends exactly when the break starts
        assert "13:30" in starts  # starts exactly when the break ends
        assert len(slots) == 30 - 4

    def test_missing_weekday_returns_empty(self):
        tuesday = date(2024, 11, 26)

        slots = compute_slots(_schedule(), ServiceVariant(duration_min=30), tuesday, [], salon_timezone=TZ)

        assert slots == []

    def test_day_without_start_or_end_returns_empty(self):
        schedule = _schedule(hours=WorkingHours.parse("09:00", None))

        slots = compute_slots(schedule, ServiceVariant(duration_min=30), MONDAY, [], salon_timezone=TZ)

        assert slots == []

    def test_duration_longer_than_window_returns_empty(self):
        schedule = _schedule(hours=WorkingHours.parse("09:00", "10:00"))

        slots = compute_slots(
            schedule,
            ServiceVariant(duration_min=45, buffer_before_min=10, buffer_after_min=10),
            MONDAY,
            [],
            salon_timezone=TZ,
        )

        assert slots == []

    def test_duration_equal_to_window_yields_one_slot(self):
        schedule = _schedule(hours=WorkingHours.parse("09:00", "10:00"))

        slots = compute_slots(schedule, ServiceVariant(duration_min=60), MONDAY, [], salon_timezone=TZ)

        assert _starts(slots) == ["09:00"]

    def test_buffers_extend_the_slot(self):
        slots = compute_slots(
            _schedule(),
            ServiceVariant(duration_min=60, buffer_before_min=5, buffer_after_min=10),
            MONDAY,
            [],
            salon_timezone=TZ,
        )

        assert all(slot.duration_minutes() == 75 for slot in slots)
        assert slots[-1].end <= _at("2024-11-25 17:00")

    def test_abutting_appointment_does_not_block(self):
        appointment = Appointment(start=_at("2024-11-25 10:00"), end=_at("2024-11-25 10:30"))

        slots = compute_slots(
            _schedule(),
            ServiceVariant(duration_min=30),
            MONDAY,
            [appointment],
            salon_timezone=TZ,
            step_minutes=30,
        )
        starts = _starts(slots)

        assert "09:30" in starts
        assert "10:00" not in starts
        assert "10:30" in starts

    def test_cancelled_appointment_does_not_block(self):
        appointment = Appointment(
            start=_at("2024-11-25 10:00"),
            end=_at("2024-11-25 10:30"),
            status="cancelled_full_refund",
        )

        slots = compute_slots(
            _schedule(),
            ServiceVariant(duration_min=30),
            MONDAY,
            [appointment],
            salon_timezone=TZ,
            step_minutes=30,
        )

        assert len(slots) == 16

    def test_multi_day_time_off_blocks_until_it_ends(self):
        time_off = TimeRange(start=_at("2024-11-23 00:00"), end=_at("2024-11-25 12:00"))

        slots = compute_slots(
            _schedule(time_off=(time_off,)),
            ServiceVariant(duration_min=30),
            MONDAY,
            [],
            salon_timezone=TZ,
            step_minutes=30,
        )

        assert _starts(slots)[0] == "12:00"
        assert len(slots) == 10

    def test_idempotent(self):
        args = (
            _schedule(hours=WorkingHours.parse("09:00", "17:00", breaks=[("12:00", "12:45")])),
            ServiceVariant(duration_min=40, buffer_after_min=5),
            MONDAY,
            [Appointment(start=_at("2024-11-25 15:00"), end=_at("2024-11-25 16:00"))],
        )

        assert compute_slots(*args, salon_timezone=TZ) == compute_slots(*args, salon_timezone=TZ)

    def test_inputs_are_not_mutated(self):
        appointments = [Appointment(start=_at("2024-11-25 15:00"), end=_at("2024-11-25 16:00"))]
        snapshot = list(appointments)

        compute_slots(_schedule(), ServiceVariant(duration_min=30), MONDAY, appointments, salon_timezone=TZ)

        assert appointments == snapshot

    def test_unknown_timezone_fails_closed(self):
        with pytest.raises(TimezoneResolutionError):
            compute_slots(
                _schedule(),
                ServiceVariant(duration_min=30),
                MONDAY,
                [],
                salon_timezone="Mars/Olympus_Mons",
            )

    @pytest.mark.parametrize("step", [0, -15])
    def test_non_positive_step_raises(self, step):
        with pytest.raises(InvalidInputError, match="step_minutes"):
            compute_slots(_schedule(), ServiceVariant(duration_min=30), MONDAY, [], step_minutes=step)

    def test_zero_effective_duration_raises(self):
        with pytest.raises(InvalidInputError, match="Effective duration"):
            compute_slots(_schedule(), ServiceVariant(duration_min=0), MONDAY, [], salon_timezone=TZ)

    def test_zero_duration_raises_even_on_day_off(self):
        tuesday = date(2024, 11, 26)

        with pytest.raises(InvalidInputError):
            compute_slots(_schedule(), ServiceVariant(duration_min=0), tuesday, [], salon_timezone=TZ)


class TestSlotInvariants:
    """Invariants that hold for every result."""

    @pytest.mark.parametrize(
        "duration, before, after, step",
        [
            (30, 0, 0, 15),
            (45, 5, 10, 15),
            (20, 0, 0, 10),
            (60, 0, 15, 30),
            (90, 10, 0, 5),
        ],
    )
    def test_invariants(self, duration, before, after, step):
        schedule = _schedule(
            hours=WorkingHours.parse("08:30", "18:00", breaks=[("12:00", "12:30"), ("15:10", "15:25")]),
            time_off=(TimeRange(start=_at("2024-11-25 16:00"), end=_at("2024-11-25 16:45")),),
        )
        variant = ServiceVariant(duration_min=duration, buffer_before_min=before, buffer_after_min=after)
        appointments = [
            Appointment(start=_at("2024-11-25 09:10"), end=_at("2024-11-25 09:55")),
            Appointment(start=_at("2024-11-25 13:00"), end=_at("2024-11-25 14:20")),
        ]

        slots = compute_slots(schedule, variant, MONDAY, appointments, salon_timezone=TZ, step_minutes=step)
        blocked = list(schedule.time_off) + [a.time_range for a in appointments]
        breaks = [
            TimeRange(start=_at("2024-11-25 12:00"), end=_at("2024-11-25 12:30")),
            TimeRange(start=_at("2024-11-25 15:10"), end=_at("2024-11-25 15:25")),
        ]

        assert slots
        for slot in slots:
            assert (slot.end - slot.start).total_seconds() == variant.effective_duration_min * 60
            assert slot.start >= _at("2024-11-25 08:30")
            assert slot.end <= _at("2024-11-25 18:00")
            assert not any(slot.time_range.overlaps(other) for other in blocked + breaks)

        starts = [slot.start for slot in slots]
        assert all(a < b for a, b in zip(starts, starts[1:]))


class TestSlotEngine:
    """Tests for SlotEngine features beyond a single-day listing."""

    def _engine(self, step: int = 15) -> SlotEngine:
        return SlotEngine(SalonCalendar(TZ), step_minutes=step)

    def test_extra_blackouts_filter_like_time_off(self):
        blackout = TimeRange(start=_at("2024-11-25 09:00"), end=_at("2024-11-25 16:00"))

        slots = self._engine(step=30).compute_slots(
            _schedule(),
            ServiceVariant(duration_min=30),
            MONDAY,
            extra_blackouts=[blackout],
        )

        assert _starts(slots) == ["16:00", "16:30"]

    def test_not_before_drops_earlier_slots(self):
        slots = self._engine(step=30).compute_slots(
            _schedule(),
            ServiceVariant(duration_min=30),
            MONDAY,
            not_before=_at("2024-11-25 15:00"),
        )

        assert _starts(slots) == ["15:30", "16:00", "16:30"]

    def test_custom_day_overrides_weekly_hours(self):
        schedule = ProviderSchedule(
            working_hours={"mon": WorkingHours.parse("09:00", "17:00")},
            custom_days={MONDAY: WorkingHours.parse("10:00", "11:00")},
        )

        slots = self._engine(step=30).compute_slots(schedule, ServiceVariant(duration_min=30), MONDAY)

        assert _starts(slots) == ["10:00", "10:30"]

    def test_inactive_provider_has_no_slots(self):
        slots = self._engine().compute_slots(
            _schedule(active=False),
            ServiceVariant(duration_min=30),
            MONDAY,
        )

        assert slots == []

    def test_weekday_is_resolved_in_salon_timezone(self):
        """Monday hours apply to the Monday civil date, wherever the caller is."""
        engine = SlotEngine(SalonCalendar("Pacific/Auckland"), step_minutes=60)
        schedule = ProviderSchedule(working_hours={"mon": WorkingHours.parse("09:00", "11:00")})

        slots = engine.compute_slots(schedule, ServiceVariant(duration_min=60), MONDAY)

        assert [slot.start for slot in slots] == [
            pendulum.datetime(2024, 11, 25, 9, tz="Pacific/Auckland"),
            pendulum.datetime(2024, 11, 25, 10, tz="Pacific/Auckland"),
        ]

    def test_spring_forward_keeps_wall_clock_hours_and_breaks(self):
        """On the spring-forward day slots follow the wall clock, not elapsed time."""
        sunday = date(2025, 3, 30)
        schedule = ProviderSchedule(
            working_hours={"sun": WorkingHours.parse("09:00", "17:00", breaks=[("13:00", "13:30")])}
        )

        slots = SlotEngine(SalonCalendar(TZ), step_minutes=30).compute_slots(
            schedule,
            ServiceVariant(duration_min=30),
            sunday,
        )

        starts = _starts(slots)
        assert len(slots) == 15
        assert starts[0] == "09:00"
        assert slots[0].start == pendulum.datetime(2025, 3, 30, 8, tz="UTC")
        assert slots[-1].end == pendulum.datetime(2025, 3, 30, 17, tz=TZ)
        assert "13:00" not in starts
        assert "14:00" in starts
        for slot in slots:
            assert (slot.end - slot.start).total_seconds() == 1800

    def test_spring_forward_skips_the_missing_hour(self):
        """Slots never start in the skipped hour or straddle it."""
        sunday = date(2025, 3, 30)
        schedule = ProviderSchedule(working_hours={"sun": WorkingHours.parse("00:00", "04:00")})

        slots = SlotEngine(SalonCalendar(TZ), step_minutes=30).compute_slots(
            schedule,
            ServiceVariant(duration_min=60),
            sunday,
        )

        assert _starts(slots) == ["00:00", "02:00", "02:30", "03:00"]
        assert slots[0].end == slots[1].start
        for slot in slots:
            assert (slot.end - slot.start).total_seconds() == 3600

    def test_fall_back_uses_later_occurrence_of_repeated_hour(self):
        sunday = date(2025, 10, 26)
        schedule = ProviderSchedule(working_hours={"sun": WorkingHours.parse("00:00", "04:00")})

        slots = SlotEngine(SalonCalendar(TZ), step_minutes=30).compute_slots(
            schedule,
            ServiceVariant(duration_min=60),
            sunday,
        )

        assert _starts(slots) == ["00:00", "00:30", "01:00", "01:30", "02:00", "02:30", "03:00"]
        assert slots[2].start == pendulum.datetime(2025, 10, 26, 1, tz="UTC")
        for earlier, later in zip(slots, slots[1:]):
            assert earlier.start < later.start
            assert not earlier.time_range.overlaps(later.time_range)
        for slot in slots:
            assert (slot.end - slot.start).total_seconds() == 3600

    def test_fall_back_drops_slots_straddling_the_fold(self):
        sunday = date(2025, 10, 26)
        schedule = ProviderSchedule(working_hours={"sun": WorkingHours.parse("00:00", "04:00")})

        slots = SlotEngine(SalonCalendar(TZ), step_minutes=30).compute_slots(
            schedule,
            ServiceVariant(duration_min=120),
            sunday,
        )

        assert _starts(slots) == ["00:00", "01:00", "01:30", "02:00"]

    def test_split_weekly_shift(self):
        """Morning and afternoon shifts are walked in order, the gap stays free."""
        schedule = ProviderSchedule(working_hours={
            "mon": (
                WorkingHours.parse("14:00", "16:00", breaks=[("15:00", "15:30")]),
                WorkingHours.parse("08:00", "10:00"),
            ),
        })

        slots = self._engine(step=30).compute_slots(schedule, ServiceVariant(duration_min=60), MONDAY)

        assert _starts(slots) == ["08:00", "08:30", "09:00", "14:00"]

    def test_split_weekly_shift_with_appointment(self):
        schedule = ProviderSchedule(working_hours={
            "mon": (WorkingHours.parse("08:00", "10:00"), WorkingHours.parse("14:00", "16:00")),
        })
        booked = [Appointment(start=_at("2024-11-25 08:30"), end=_at("2024-11-25 09:00"))]

        slots = self._engine(step=30).compute_slots(
            schedule,
            ServiceVariant(duration_min=60),
            MONDAY,
            appointments=booked,
        )

        assert _starts(slots) == ["09:00", "14:00", "14:30", "15:00"]

    def test_split_custom_day(self):
        schedule = ProviderSchedule(
            working_hours={"mon": WorkingHours.parse("09:00", "17:00")},
            custom_days={MONDAY: (WorkingHours.parse("09:00", "10:00"), WorkingHours.parse("16:00", "17:00"))},
        )

        slots = self._engine(step=30).compute_slots(schedule, ServiceVariant(duration_min=30), MONDAY)

        assert _starts(slots) == ["09:00", "09:30", "16:00", "16:30"]

    def test_empty_custom_day_is_a_day_off(self):
        schedule = ProviderSchedule(
            working_hours={"mon": WorkingHours.parse("09:00", "17:00")},
            custom_days={MONDAY: ()},
        )

        assert self._engine().compute_slots(schedule, ServiceVariant(duration_min=30), MONDAY) == []

    def test_shift_ending_at_midnight(self):
        schedule = ProviderSchedule(working_hours={"mon": WorkingHours.parse("22:00", "24:00")})

        slots = self._engine(step=60).compute_slots(schedule, ServiceVariant(duration_min=60), MONDAY)

        assert _starts(slots) == ["22:00", "23:00"]
        assert slots[-1].end == _at("2024-11-26 00:00")

    def test_is_available_on_grid(self):
        engine = self._engine()
        variant = ServiceVariant(duration_min=30)

        assert engine.is_available(_schedule(), variant, _at("2024-11-25 09:15"))
        assert engine.is_available(_schedule(), variant, pendulum.parse("2024-11-25T09:15:00Z"))

    def test_is_available_rejects_off_grid_and_conflicts(self):
        engine = self._engine()
        variant = ServiceVariant(duration_min=30)
        booked = [Appointment(start=_at("2024-11-25 11:00"), end=_at("2024-11-25 11:30"))]

        assert not engine.is_available(_schedule(), variant, _at("2024-11-25 09:10"))
        assert not engine.is_available(_schedule(), variant, _at("2024-11-25 10:45"), appointments=booked)
        assert not engine.is_available(_schedule(), variant, _at("2024-11-25 16:45"))
        assert engine.is_available(_schedule(), variant, _at("2024-11-25 11:30"), appointments=booked)

    def test_is_available_honours_not_before(self):
        engine = self._engine()
        variant = ServiceVariant(duration_min=30)
        now = _at("2024-11-25 12:00")

        assert not engine.is_available(_schedule(), variant, _at("2024-11-25 09:15"), not_before=now)
        assert not engine.is_available(_schedule(), variant, _at("2024-11-25 12:00"), not_before=now)
        assert engine.is_available(_schedule(), variant, _at("2024-11-25 12:15"), not_before=now)

    def test_next_available_skips_days_off(self):
        schedule = ProviderSchedule(working_hours={"wed": WorkingHours.parse("12:00", "20:00")})

        slot = self._engine().next_available(schedule, ServiceVariant(duration_min=30), MONDAY)

        assert slot is not None
        assert slot.start == _at("2024-11-27 12:00")

    def test_next_available_respects_bookings(self):
        booked = [Appointment(start=_at("2024-11-25 09:00"), end=_at("2024-11-25 17:00"))]

        slot = self._engine().next_available(
            _schedule(),
            ServiceVariant(duration_min=30),
            MONDAY,
            appointments=booked,
        )

        assert slot is not None
        assert slot.start == _at("2024-12-02 09:00")

    def test_next_available_returns_none_within_horizon(self):
        slot = self._engine().next_available(
            _schedule(),
            ServiceVariant(duration_min=30),
            date(2024, 11, 26),
            horizon_days=5,
        )

        assert slot is None

    @pytest.mark.parametrize("horizon", [0, 91])
    def test_next_available_rejects_bad_horizon(self, horizon):
        with pytest.raises(InvalidInputError, match="horizon_days"):
            self._engine().next_available(_schedule(), ServiceVariant(duration_min=30), MONDAY, horizon_days=horizon)
