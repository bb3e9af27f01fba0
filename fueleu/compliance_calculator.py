# -*- coding: utf-8 -*-
"""
Compliance Balance Calculator

Computes a ship's FuelEU compliance balance from its fuel consumption and
actual GHG intensity against the regulatory target::

    energy_in_scope = fuel_consumption * ENERGY_CONVERSION_FACTOR   (MJ)
    cb_value        = (TARGET_INTENSITY - actual_intensity) * energy_in_scope

A positive balance is surplus, a negative one deficit. The calculation is
pure: identical inputs always give the identical balance and nothing is
stored.

Example:
    >>> from fueleu.compliance_calculator import ComplianceCalculator
    >>> calc = ComplianceCalculator()
    >>> cb = calc.compute("R001", 2024, 91.0, 5000.0)
    >>> cb.is_deficit()
    True

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Optional

from fueleu.config import FuelEUConfig, get_config
from fueleu.models import (
    ComplianceBalance,
    ComplianceResult,
    require_non_negative,
    require_ship_id,
    require_year,
)

logger = logging.getLogger(__name__)


class ComplianceCalculator:
    """Pure compliance balance calculation.

    Attributes:
        target_intensity: Regulatory target in gCO2e/MJ.
        energy_conversion_factor: MJ per tonne of fuel.
    """

    def __init__(self, config: Optional[FuelEUConfig] = None) -> None:
        """Initialize the calculator.

        Args:
            config: Optional FuelEUConfig. Uses the global config if None.
        """
        cfg = config if config is not None else get_config()
        self.target_intensity: float = cfg.target_intensity
        self.energy_conversion_factor: float = cfg.energy_conversion_factor
        self._min_year: int = cfg.min_year
        self._max_year: int = cfg.max_year

    def energy_in_scope(self, fuel_consumption: float) -> float:
        """Energy in scope (MJ) for a fuel mass in tonnes."""
        return fuel_consumption * self.energy_conversion_factor

    def compute(
        self,
        ship_id: str,
        year: int,
        actual_intensity: float,
        fuel_consumption: float,
    ) -> ComplianceBalance:
        """Compute the compliance balance for a ship-year.

        Args:
            ship_id: Ship identifier, non-blank.
            year: Reporting year within the configured bounds.
            actual_intensity: Actual GHG intensity in gCO2e/MJ, >= 0.
            fuel_consumption: Fuel consumed in tonnes, >= 0.

        Returns:
            ComplianceBalance timestamped by the deterministic clock.

        Raises:
            InvalidInputError: If any argument is invalid.
        """
        return self.compute_detailed(
            ship_id, year, actual_intensity, fuel_consumption,
        ).balance

    def compute_detailed(
        self,
        ship_id: str,
        year: int,
        actual_intensity: float,
        fuel_consumption: float,
    ) -> ComplianceResult:
        """Compute the balance together with energy in scope and status.

        Raises:
            InvalidInputError: If any argument is invalid.
        """
        require_ship_id(ship_id)
        require_year(year, self._min_year, self._max_year)
        intensity = require_non_negative(actual_intensity, "actual_intensity")
        fuel = require_non_negative(fuel_consumption, "fuel_consumption")

        energy = self.energy_in_scope(fuel)
        cb_value = (self.target_intensity - intensity) * energy

        balance = ComplianceBalance(
            ship_id=ship_id,
            year=year,
            cb_value=cb_value,
        )
        logger.debug(
            "Computed CB for %s/%d: intensity=%.4f fuel=%.2f energy=%.1f "
            "cb=%.2f",
            ship_id, year, intensity, fuel, energy, cb_value,
        )
        return ComplianceResult(
            balance=balance,
            energy_in_scope=energy,
            status=balance.get_status(),
        )


__all__ = ["ComplianceCalculator"]
