# -*- coding: utf-8 -*-
"""
Pool Allocator

Forms a FuelEU compliance pool by redistributing surplus from ships with a
positive adjusted balance to ships in deficit.

Algorithm (greedy, deterministic):
    1. Sort members by ``cb_before`` descending. The sort is stable, so
       equal balances keep their input order.
    2. Start every member at ``cb_after = cb_before``.
    3. Walk deficit members in sorted order. For each one, walk surplus
       members in sorted order, skip exhausted ones, and move
       ``min(surplus, |deficit|)`` until the deficit reaches zero.
    4. Members at exactly zero are left untouched.

A pool whose total adjusted balance is negative is rejected before the
allocation runs. The resulting members are then validated against the
pool invariants when the :class:`~fueleu.models.Pool` is built.

Example:
    >>> greedy_allocate([("A", 150.0), ("B", -30.0), ("C", -80.0)])
    [PoolMember(ship_id='A', cb_before=150.0, cb_after=40.0), ...]

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from fueleu.config import FuelEUConfig, get_config
from fueleu.exceptions import BusinessRuleViolation, InvalidInputError
from fueleu.models import (
    PoolMember,
    PoolResult,
    require_ship_id,
    require_year,
    validate_pool_members,
)
from fueleu.repository import ComplianceRepository

logger = logging.getLogger(__name__)


def greedy_allocate(balances: Sequence[Tuple[str, float]]) -> List[PoolMember]:
    """Run the greedy surplus-to-deficit allocation.

    Args:
        balances: ``(ship_id, cb_before)`` pairs in input order.

    Returns:
        Pool members in sorted (descending ``cb_before``) order.
    """
    ordered = sorted(balances, key=lambda pair: pair[1], reverse=True)
    ship_ids = [ship_id for ship_id, _ in ordered]
    before = [cb for _, cb in ordered]
    after = list(before)

    surplus_idx = [i for i, cb in enumerate(before) if cb > 0]
    deficit_idx = [i for i, cb in enumerate(before) if cb < 0]

    for d in deficit_idx:
        for s in surplus_idx:
            if after[s] <= 0:
                continue
            transfer = min(after[s], abs(after[d]))
            after[s] -= transfer
            after[d] += transfer
            if after[d] >= 0:
                break

    return [
        PoolMember(ship_id=ship_id, cb_before=cb_before, cb_after=cb_after)
        for ship_id, cb_before, cb_after in zip(ship_ids, before, after)
    ]


class PoolAllocator:
    """Builds, validates and persists compliance pools.

    The allocator accepts a single-ship pool; a larger minimum is caller
    policy (see ``FuelEUConfig.min_pool_members``).
    """

    def __init__(
        self,
        repository: ComplianceRepository,
        config: Optional[FuelEUConfig] = None,
    ) -> None:
        cfg = config if config is not None else get_config()
        self.repository = repository
        self._min_year: int = cfg.min_year
        self._max_year: int = cfg.max_year

    def allocate(self, year: int, ship_ids: Sequence[str]) -> PoolResult:
        """Create a pool for the given ships.

        Args:
            year: Reporting year.
            ship_ids: Distinct member ship ids, at least one, in input
                order.

        Returns:
            PoolResult with the persisted pool and its totals.

        Raises:
            InvalidInputError: If the year or any ship id is invalid, or
                no ship ids are given.
            BusinessRuleViolation: If the total adjusted balance is
                negative or an invariant fails after allocation.
        """
        require_year(year, self._min_year, self._max_year)
        if not ship_ids:
            raise InvalidInputError(
                "Pool must have at least one ship",
                field="ship_ids",
                value=list(ship_ids) if ship_ids is not None else None,
            )
        for ship_id in ship_ids:
            require_ship_id(ship_id, field="ship_ids")
        if len(set(ship_ids)) != len(ship_ids):
            raise InvalidInputError(
                "Pool ship IDs must be unique",
                field="ship_ids",
                value=list(ship_ids),
            )

        balances = [
            (ship_id,
             self.repository.get_adjusted_compliance_balance(ship_id, year))
            for ship_id in ship_ids
        ]
        total_before = sum(cb for _, cb in balances)
        if total_before < 0:
            raise BusinessRuleViolation(
                f"Pool total CB must be non-negative, got {total_before}",
                rule="pool_total_non_negative",
                values={"total_cb_before": total_before,
                        "balances": dict(balances)},
            )

        members = greedy_allocate(balances)
        validate_pool_members(members)

        pool = self.repository.persist_pool(year, members)
        logger.info(
            "Created pool %s for %d ships in %d: total_before=%.2f "
            "total_after=%.2f",
            pool.id, pool.member_count, year,
            pool.total_cb_before, pool.total_cb_after,
        )
        return PoolResult(
            pool=pool,
            total_cb_before=pool.total_cb_before,
            total_cb_after=pool.total_cb_after,
        )


__all__ = ["greedy_allocate", "PoolAllocator"]
