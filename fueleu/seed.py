# -*- coding: utf-8 -*-
"""
Reference route data

Five reference routes covering container, bulk, tanker and ro-ro vessels
on HFO, LNG and MGO for 2024 and 2025. R002 (BulkCarrier, LNG, 2024) is
the default comparison baseline.
"""

from __future__ import annotations

import logging
from typing import List

from fueleu.models import Route
from fueleu.repository import ComplianceRepository

logger = logging.getLogger(__name__)

#: Route id of the default comparison baseline.
DEFAULT_BASELINE_ROUTE_ID: str = "R002"

#: Reference routes (fuel in t, distance in km, emissions in t CO2e).
SEED_ROUTES: List[Route] = [
    Route(route_id="R001", vessel_type="Container", fuel_type="HFO",
          year=2024, ghg_intensity=91.0, fuel_consumption=5000.0,
          distance=12000.0, total_emissions=4500.0),
    Route(route_id="R002", vessel_type="BulkCarrier", fuel_type="LNG",
          year=2024, ghg_intensity=88.0, fuel_consumption=4800.0,
          distance=11500.0, total_emissions=4200.0, is_baseline=True),
    Route(route_id="R003", vessel_type="Tanker", fuel_type="MGO",
          year=2024, ghg_intensity=93.5, fuel_consumption=5100.0,
          distance=12500.0, total_emissions=4700.0),
    Route(route_id="R004", vessel_type="RoRo", fuel_type="HFO",
          year=2025, ghg_intensity=89.2, fuel_consumption=4900.0,
          distance=11800.0, total_emissions=4300.0),
    Route(route_id="R005", vessel_type="Container", fuel_type="LNG",
          year=2025, ghg_intensity=90.5, fuel_consumption=4950.0,
          distance=11900.0, total_emissions=4400.0),
]


def seed_routes(repository: ComplianceRepository) -> List[Route]:
    """Load the reference routes, keeping any that already exist.

    If no baseline is set afterwards, R002 becomes the baseline.

    Returns:
        All stored routes ordered by route id.
    """
    added = 0
    for route in SEED_ROUTES:
        if repository.find_route_by_route_id(route.route_id) is None:
            repository.save_route(route.model_copy(update={"is_baseline": False}))
            added += 1

    baseline = repository.find_baseline_route()
    if baseline is None:
        baseline = repository.set_baseline_route(DEFAULT_BASELINE_ROUTE_ID)

    routes = repository.find_all_routes()
    logger.info(
        "Seeded %d reference routes (%d stored, baseline=%s)",
        added, len(routes), baseline.route_id,
    )
    return routes


__all__ = ["DEFAULT_BASELINE_ROUTE_ID", "SEED_ROUTES", "seed_routes"]
