"""
Tests for slot generator.
"""

from datetime import time

import pytest

from sessionbooker.domain.models import FixedTimeRule, Period, SessionType, WeekdayRule
from sessionbooker.domain.slot_generator import SlotGenerator


WEDNESDAY = WeekdayRule(
    weekday=2,
    periods=(Period.MORNING,),
    session_types=(SessionType.ACUPUNTURA, SessionType.ESCALDA_PES),
    fixed_time=FixedTimeRule(SessionType.ESCALDA_PES, Period.MORNING, "10:00"),
)

THURSDAY = WeekdayRule(
    weekday=3,
    periods=(Period.MORNING, Period.AFTERNOON),
    session_types=(SessionType.PILATES, SessionType.MASSAGEM),
)


class TestSlotGenerator:
    """Tests for SlotGenerator."""

    def test_morning_slots(self):
        """Morning starts at 08:30 and advances by 45 minutes."""
        generator = SlotGenerator()

        slots = generator.generate(Period.MORNING, THURSDAY, SessionType.PILATES)

        assert slots == ["08:30", "09:15", "10:00", "10:45"]

    def test_afternoon_slots(self):
        generator = SlotGenerator()

        slots = generator.generate(Period.AFTERNOON, THURSDAY, SessionType.MASSAGEM)

        assert slots == ["14:30", "15:15", "16:00", "16:45"]

    def test_slot_count_is_configured_count(self):
        """Every non-fixed period yields exactly the configured slot count."""
        generator = SlotGenerator()

        for period in Period:
            for session_type in THURSDAY.session_types:
                assert len(generator.generate(period, THURSDAY, session_type)) == 4

    def test_fixed_time_in_matching_period(self):
        """A fixed-time session type yields exactly one slot."""
        generator = SlotGenerator()

        slots = generator.generate(Period.MORNING, WEDNESDAY, SessionType.ESCALDA_PES)

        assert slots == ["10:00"]

    def test_fixed_time_in_other_period(self):
        generator = SlotGenerator()

        slots = generator.generate(Period.AFTERNOON, WEDNESDAY, SessionType.ESCALDA_PES)

        assert slots == []

    def test_other_types_unaffected_by_fixed_time(self):
        generator = SlotGenerator()

        slots = generator.generate(Period.MORNING, WEDNESDAY, SessionType.ACUPUNTURA)

        assert len(slots) == 4

    def test_slots_are_on_the_step_grid(self):
        """Every slot is the period start plus a multiple of the step."""
        generator = SlotGenerator(slot_count=6, step_minutes=45)

        slots = generator.generate(Period.AFTERNOON, THURSDAY, SessionType.MASSAGEM)

        start = 14 * 60 + 30
        for slot in slots:
            hour, minute = (int(part) for part in slot.split(":"))
            assert (hour * 60 + minute - start) % 45 == 0

    def test_minutes_carry_into_hour(self):
        """Minutes past 60 roll over into the hour, zero-padded."""
        generator = SlotGenerator(
            period_starts={Period.MORNING: time(7, 50), Period.AFTERNOON: time(13, 0)},
            slot_count=3,
            step_minutes=75,
        )

        slots = generator.generate(Period.MORNING, THURSDAY, SessionType.PILATES)

        assert slots == ["07:50", "09:05", "10:20"]

    def test_deterministic(self):
        generator = SlotGenerator()

        first = generator.generate(Period.MORNING, THURSDAY, SessionType.PILATES)
        second = generator.generate(Period.MORNING, THURSDAY, SessionType.PILATES)

        assert first == second

    def test_invalid_configuration(self):
        with pytest.raises(ValueError, match="slot_count"):
            SlotGenerator(slot_count=0)

        with pytest.raises(ValueError, match="step_minutes"):
            SlotGenerator(step_minutes=0)

        with pytest.raises(ValueError, match="No start time"):
            SlotGenerator(period_starts={Period.MORNING: time(8, 30)})

    def test_fixed_time_on_default_grid(self):
        SlotGenerator().check_rule(WEDNESDAY)
        SlotGenerator().check_rule(THURSDAY)

    def test_fixed_time_off_shifted_grid(self):
        """Moving the morning start puts 10:00 between slots."""
        generator = SlotGenerator(period_starts={
            Period.MORNING: time(8, 0),
            Period.AFTERNOON: time(14, 30),
        })

        with pytest.raises(ValueError, match="not on the morning slot grid"):
            generator.check_rule(WEDNESDAY)

    def test_fixed_time_beyond_last_slot(self):
        with pytest.raises(ValueError, match="10:00"):
            SlotGenerator(slot_count=2).check_rule(WEDNESDAY)
