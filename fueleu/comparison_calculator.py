# -*- coding: utf-8 -*-
"""
Route Comparison Calculator

Compares the GHG intensity of routes against a baseline route::

    percent_diff = ((comparison / baseline) - 1) * 100
    compliant    = comparison < TARGET_INTENSITY

The baseline intensity is the denominator and must be strictly positive.

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from fueleu.config import FuelEUConfig, get_config
from fueleu.exceptions import InvalidInputError
from fueleu.models import ComparisonResult, Route, RouteRef

logger = logging.getLogger(__name__)


class ComparisonCalculator:
    """Pure baseline-versus-route intensity comparison."""

    def __init__(self, config: Optional[FuelEUConfig] = None) -> None:
        cfg = config if config is not None else get_config()
        self.target_intensity: float = cfg.target_intensity

    def is_compliant(self, ghg_intensity: float) -> bool:
        """True when the intensity is strictly below the target."""
        return ghg_intensity < self.target_intensity

    def compare(
        self,
        baseline: Optional[Route],
        comparison: Optional[Route],
    ) -> ComparisonResult:
        """Compare one route against the baseline.

        Args:
            baseline: Baseline route, ghg_intensity must be > 0.
            comparison: Route being compared.

        Returns:
            ComparisonResult with percent difference and compliance flag.

        Raises:
            InvalidInputError: If either route is missing or the baseline
                intensity is not positive.
        """
        if baseline is None:
            raise InvalidInputError("Baseline route is required", field="baseline")
        if comparison is None:
            raise InvalidInputError(
                "Comparison route is required", field="comparison",
            )
        if not baseline.ghg_intensity > 0:
            raise InvalidInputError(
                "Baseline GHG intensity must be positive",
                field="baseline.ghg_intensity",
                value=baseline.ghg_intensity,
            )

        percent_diff = (
            (comparison.ghg_intensity / baseline.ghg_intensity) - 1
        ) * 100

        return ComparisonResult(
            baseline=RouteRef(
                route_id=baseline.route_id,
                ghg_intensity=baseline.ghg_intensity,
            ),
            comparison=RouteRef(
                route_id=comparison.route_id,
                ghg_intensity=comparison.ghg_intensity,
            ),
            percent_diff=percent_diff,
            compliant=self.is_compliant(comparison.ghg_intensity),
        )

    def compare_multiple(
        self,
        baseline: Optional[Route],
        comparisons: Sequence[Route],
    ) -> List[ComparisonResult]:
        """Compare each route against the baseline, in input order.

        Raises:
            InvalidInputError: If ``comparisons`` is empty or any single
                comparison is invalid.
        """
        if not comparisons:
            raise InvalidInputError(
                "At least one comparison route is required",
                field="comparisons",
                value=[],
            )
        results = [self.compare(baseline, route) for route in comparisons]
        logger.debug(
            "Compared %d routes against baseline %s",
            len(results), baseline.route_id if baseline else None,
        )
        return results


__all__ = ["ComparisonCalculator"]
