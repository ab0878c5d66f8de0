"""
Tests for the cycle generator.
"""

from datetime import date
from decimal import Decimal

import pytest

from recurring_cycles.engine.generator import clip_to_month, generate_cycles, occurrence_date
from recurring_cycles.models.recurrence import CustomUnit, FrequencyUnit, RecurrenceRule


def expected_dates(rule: RecurrenceRule, max_cycles: int) -> list[date]:
    return [c.expected_date for c in generate_cycles(rule, max_cycles)]


class TestMonthClipping:
    """Tests for end-of-month handling."""

    def test_clip_to_month(self):
        """Test clipping to the last day of short months."""
        assert clip_to_month(2024, 2, 31) == date(2024, 2, 29)
        assert clip_to_month(2023, 2, 31) == date(2023, 2, 28)
        assert clip_to_month(2024, 4, 31) == date(2024, 4, 30)
        assert clip_to_month(2024, 5, 31) == date(2024, 5, 31)

    def test_jan31_monthly(self, jan31_rule):
        """Test the 31st anchor through a leap February and back."""
        assert expected_dates(jan31_rule, 4) == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_start_day_used_without_anchor(self):
        """Test that the start date's day is the anchor when none is set."""
        rule = RecurrenceRule(start_date=date(2024, 1, 31))
        assert expected_dates(rule, 3) == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
        ]

    def test_yearly_leap_day(self):
        """Test a Feb 29 yearly rule in non-leap years."""
        rule = RecurrenceRule(
            start_date=date(2024, 2, 29),
            frequency=FrequencyUnit.YEARLY,
        )
        assert expected_dates(rule, 5) == [
            date(2024, 2, 29),
            date(2025, 2, 28),
            date(2026, 2, 28),
            date(2027, 2, 28),
            date(2028, 2, 29),
        ]


class TestFrequencies:
    """Tests for each frequency unit."""

    def test_daily(self):
        """Test daily steps."""
        rule = RecurrenceRule(start_date=date(2024, 2, 28), frequency=FrequencyUnit.DAILY)
        assert expected_dates(rule, 3) == [
            date(2024, 2, 28),
            date(2024, 2, 29),
            date(2024, 3, 1),
        ]

    def test_biweekly(self):
        """Test weekly with interval 2."""
        rule = RecurrenceRule(
            start_date=date(2024, 1, 1),
            frequency=FrequencyUnit.WEEKLY,
            interval=2,
        )
        assert expected_dates(rule, 3) == [
            date(2024, 1, 1),
            date(2024, 1, 15),
            date(2024, 1, 29),
        ]

    def test_weekly_ignores_anchor_day(self):
        """Test that the anchor day only applies to month-based units."""
        rule = RecurrenceRule(
            start_date=date(2024, 1, 1),
            frequency=FrequencyUnit.WEEKLY,
            anchor_day=20,
        )
        assert expected_dates(rule, 2) == [date(2024, 1, 1), date(2024, 1, 8)]

    def test_quarterly(self):
        """Test quarterly steps of three months."""
        rule = RecurrenceRule(start_date=date(2024, 1, 15), frequency=FrequencyUnit.QUARTERLY)
        assert expected_dates(rule, 3) == [
            date(2024, 1, 15),
            date(2024, 4, 15),
            date(2024, 7, 15),
        ]

    def test_custom_weeks(self):
        """Test custom every-3-weeks."""
        rule = RecurrenceRule(
            start_date=date(2024, 1, 1),
            frequency=FrequencyUnit.CUSTOM,
            custom_unit=CustomUnit.WEEKS,
            interval=3,
        )
        assert expected_dates(rule, 2) == [date(2024, 1, 1), date(2024, 1, 22)]

    def test_custom_months(self):
        """Test custom every-2-months with clipping."""
        rule = RecurrenceRule(
            start_date=date(2023, 12, 31),
            frequency=FrequencyUnit.CUSTOM,
            custom_unit=CustomUnit.MONTHS,
            interval=2,
        )
        assert expected_dates(rule, 3) == [
            date(2023, 12, 31),
            date(2024, 2, 29),
            date(2024, 4, 30),
        ]

    def test_anchor_before_start_moves_to_next_month(self):
        """Test that an anchor already passed in the start month is skipped."""
        rule = RecurrenceRule(start_date=date(2024, 1, 20), anchor_day=5)
        assert expected_dates(rule, 2) == [date(2024, 2, 5), date(2024, 3, 5)]

    def test_anchor_after_start_stays_in_start_month(self):
        """Test that a later anchor is used in the start month."""
        rule = RecurrenceRule(start_date=date(2024, 1, 20), anchor_day=25)
        assert occurrence_date(rule, 0) == date(2024, 1, 25)


class TestGenerationBounds:
    """Tests for caps, end dates and cycle shape."""

    def test_zero_cap(self, jan31_rule):
        """Test that a cap of zero (or less) yields no cycles."""
        assert generate_cycles(jan31_rule, 0) == []
        assert generate_cycles(jan31_rule, -3) == []

    def test_end_date_is_inclusive(self):
        """Test that an occurrence on the end date is included."""
        rule = RecurrenceRule(
            start_date=date(2024, 1, 1),
            end_date=date(2024, 3, 1),
        )
        assert expected_dates(rule, 12) == [
            date(2024, 1, 1),
            date(2024, 2, 1),
            date(2024, 3, 1),
        ]

    def test_period_ends_at_next_occurrence(self, jan31_rule):
        """Test the [start, end) period of each cycle."""
        cycles = generate_cycles(jan31_rule, 3)
        assert cycles[0].start_date == date(2024, 1, 31)
        assert cycles[0].end_date == date(2024, 2, 29)
        assert cycles[2].end_date == date(2024, 4, 30)

    def test_expected_amount_is_base_amount(self, jan31_rule):
        """Test that generated cycles carry the base amount."""
        cycles = generate_cycles(jan31_rule, 2)
        assert all(c.expected_amount == Decimal("20") for c in cycles)

    @pytest.mark.parametrize("rule", [
        RecurrenceRule(start_date=date(2024, 1, 31), anchor_day=31),
        RecurrenceRule(start_date=date(2024, 3, 3), frequency=FrequencyUnit.DAILY, interval=5),
        RecurrenceRule(start_date=date(2024, 3, 3), frequency=FrequencyUnit.WEEKLY),
        RecurrenceRule(start_date=date(2024, 2, 29), frequency=FrequencyUnit.YEARLY),
        RecurrenceRule(
            start_date=date(2024, 5, 10),
            end_date=date(2024, 9, 1),
            frequency=FrequencyUnit.CUSTOM,
            custom_unit=CustomUnit.QUARTERS,
        ),
    ])
    @pytest.mark.parametrize("max_cycles", [1, 7, 24])
    def test_shape_invariants(self, rule, max_cycles):
        """Test cap, numbering, period order and strictly increasing dates."""
        cycles = generate_cycles(rule, max_cycles)

        assert len(cycles) <= max_cycles
        assert [c.cycle_number for c in cycles] == list(range(1, len(cycles) + 1))
        assert all(c.start_date < c.end_date for c in cycles)

        dates = [c.expected_date for c in cycles]
        assert dates == sorted(set(dates))
