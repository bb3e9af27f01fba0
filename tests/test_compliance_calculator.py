# -*- coding: utf-8 -*-
"""Tests for the compliance balance calculator."""

import pytest

from fueleu.compliance_calculator import ComplianceCalculator
from fueleu.config import FuelEUConfig
from fueleu.exceptions import InvalidInputError
from fueleu.models import ComplianceStatus


@pytest.fixture
def calculator(config):
    return ComplianceCalculator(config)


class TestCompute:
    """CB = (target - actual) * fuel * 41000."""

    def test_below_target_is_surplus(self, calculator):
        """Intensity below target yields a positive balance."""
        balance = calculator.compute("S1", 2024, 88.0, 100.0)

        assert balance.cb_value == pytest.approx(5_480_880.0)
        assert balance.get_status() == ComplianceStatus.SURPLUS
        assert balance.is_surplus()

    def test_above_target_is_deficit(self, calculator):
        """Intensity above target yields a negative balance."""
        balance = calculator.compute("R001", 2024, 91.0, 5000.0)

        assert balance.cb_value == pytest.approx(-340_956_000.0)
        assert balance.get_status() == ComplianceStatus.DEFICIT
        assert balance.is_deficit()

    def test_intensity_at_target_is_zero_surplus(self, calculator):
        """A balance of exactly zero counts as SURPLUS."""
        balance = calculator.compute("S1", 2024, 89.3368, 100.0)

        assert balance.cb_value == 0.0
        assert balance.get_status() == ComplianceStatus.SURPLUS
        assert not balance.is_surplus()
        assert not balance.is_deficit()
        assert balance.display_status() == ComplianceStatus.NEUTRAL

    def test_zero_fuel_gives_zero_balance(self, calculator):
        """No fuel burned means no energy in scope."""
        assert calculator.compute("S1", 2024, 95.0, 0.0).cb_value == 0.0

    def test_balance_is_timestamped_by_clock(self, calculator, frozen_clock):
        """computed_at comes from the deterministic clock."""
        assert calculator.compute("S1", 2024, 88.0, 1.0).computed_at == frozen_clock

    def test_compute_is_deterministic(self, calculator):
        """Identical input gives identical output."""
        first = calculator.compute("S1", 2024, 90.1, 1234.5)
        second = calculator.compute("S1", 2024, 90.1, 1234.5)

        assert first == second

    def test_custom_target_from_config(self):
        """The target intensity is taken from configuration."""
        calculator = ComplianceCalculator(FuelEUConfig(target_intensity=90.0))

        assert calculator.compute("S1", 2024, 89.0, 1.0).cb_value == pytest.approx(41_000.0)


class TestComputeDetailed:
    """Result envelope with energy in scope."""

    def test_energy_in_scope(self, calculator):
        """Energy is fuel tonnes times 41000 MJ."""
        result = calculator.compute_detailed("S1", 2024, 88.0, 100.0)

        assert result.energy_in_scope == 4_100_000.0
        assert result.status == ComplianceStatus.SURPLUS
        assert result.balance.ship_id == "S1"
        assert result.provenance_hash == ""


class TestValidation:
    """Invalid input is rejected before any calculation."""

    @pytest.mark.parametrize("ship_id", ["", "   ", None])
    def test_blank_ship_id(self, calculator, ship_id):
        """Ship id must be non-blank."""
        with pytest.raises(InvalidInputError, match="Ship ID is required"):
            calculator.compute(ship_id, 2024, 88.0, 100.0)

    @pytest.mark.parametrize("year", [1999, 2101, True])
    def test_year_out_of_range(self, calculator, year):
        """Year must lie within 2000-2100."""
        with pytest.raises(InvalidInputError, match="Year must be between 2000 and 2100"):
            calculator.compute("S1", year, 88.0, 100.0)

    def test_year_bounds_inclusive(self, calculator):
        """2000 and 2100 are accepted."""
        assert calculator.compute("S1", 2000, 88.0, 1.0).year == 2000
        assert calculator.compute("S1", 2100, 88.0, 1.0).year == 2100

    def test_negative_intensity(self, calculator):
        """Intensity must be non-negative."""
        with pytest.raises(InvalidInputError) as exc_info:
            calculator.compute("S1", 2024, -1.0, 100.0)
        assert exc_info.value.field == "actual_intensity"

    def test_negative_fuel(self, calculator):
        """Fuel consumption must be non-negative."""
        with pytest.raises(InvalidInputError) as exc_info:
            calculator.compute("S1", 2024, 88.0, -5.0)
        assert exc_info.value.field == "fuel_consumption"

    @pytest.mark.parametrize(
        "intensity,fuel,field",
        [
            (float("nan"), 100.0, "actual_intensity"),
            (float("inf"), 100.0, "actual_intensity"),
            (88.0, float("nan"), "fuel_consumption"),
            (88.0, float("inf"), "fuel_consumption"),
        ],
    )
    def test_non_finite_inputs(self, calculator, intensity, fuel, field):
        """NaN and infinite inputs are rejected."""
        with pytest.raises(InvalidInputError, match="finite") as exc_info:
            calculator.compute("S1", 2024, intensity, fuel)
        assert exc_info.value.field == field

    def test_overflowing_balance_rejected(self, calculator):
        """A result too large to represent is not stored as infinity."""
        with pytest.raises(InvalidInputError) as exc_info:
            calculator.compute("S1", 2024, 0.0, 1e308)
        assert exc_info.value.field == "cb_value"
