"""
Tests for pricing phase resolution.
"""

from datetime import date
from decimal import Decimal

from recurring_cycles.engine.generator import generate_cycles
from recurring_cycles.engine.pricing import resolve_pricing_phases
from recurring_cycles.models.recurrence import PricingPhase


class TestPricingPhases:
    """Tests for time-scoped amounts."""

    def test_price_increase_from_third_cycle(self, jan31_rule):
        """Test base 20 with a 50 phase starting on cycle 3's expected date."""
        cycles = generate_cycles(jan31_rule, 5)
        phase = PricingPhase(start_date=cycles[2].expected_date, amount=Decimal("50"))

        resolved = resolve_pricing_phases(cycles, [phase], Decimal("20"))

        assert [c.expected_amount for c in resolved] == [
            Decimal("20"),
            Decimal("20"),
            Decimal("50"),
            Decimal("50"),
            Decimal("50"),
        ]

    def test_latest_applicable_phase_wins(self, jan31_rule):
        """Test a trial phase followed by a permanent price."""
        cycles = generate_cycles(jan31_rule, 4)
        phases = [
            PricingPhase(start_date=date(2024, 3, 1), amount=Decimal("25"), label="Standard"),
            PricingPhase(start_date=date(2024, 1, 1), amount=Decimal("0"), label="Trial", prorated=True),
        ]

        resolved = resolve_pricing_phases(cycles, phases, Decimal("20"))

        assert [c.expected_amount for c in resolved] == [
            Decimal("0"), Decimal("0"), Decimal("25"), Decimal("25"),
        ]
        assert resolved[0].phase_label == "Trial"
        assert resolved[0].prorated is True
        assert resolved[3].phase_label == "Standard"
        assert resolved[3].prorated is False

    def test_cycles_before_first_phase_keep_base(self, jan31_rule):
        """Test that cycles before any phase use the base amount."""
        cycles = generate_cycles(jan31_rule, 2)
        phase = PricingPhase(start_date=date(2030, 1, 1), amount=Decimal("99"))

        resolved = resolve_pricing_phases(cycles, [phase], Decimal("20"))

        assert all(c.expected_amount == Decimal("20") for c in resolved)
        assert all(c.phase_label is None for c in resolved)

    def test_no_phases(self, jan31_rule):
        """Test that no phases means the base amount everywhere."""
        cycles = generate_cycles(jan31_rule, 3)
        assert resolve_pricing_phases(cycles, [], Decimal("20")) == cycles

    def test_inputs_not_modified(self, jan31_rule):
        """Test that resolution returns new cycles."""
        cycles = generate_cycles(jan31_rule, 2)
        phase = PricingPhase(start_date=date(2024, 1, 1), amount=Decimal("7"))

        resolve_pricing_phases(cycles, [phase], Decimal("20"))

        assert cycles[0].expected_amount == Decimal("20")
