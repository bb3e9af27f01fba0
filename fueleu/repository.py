# -*- coding: utf-8 -*-
"""
Compliance Repository Interface and In-Memory Implementation

:class:`ComplianceRepository` is the storage contract the calculators,
ledger and allocator are constructed with. Any storage engine that
implements it is substitutable; this module ships the thread-safe
:class:`InMemoryRepository` used by tests and embedded services, and
:mod:`fueleu.db.repository` ships the SQLAlchemy one. Apply writes its
ledger entry and the raised balance through one call,
:meth:`ComplianceRepository.apply_ledger_entry`, so the two never diverge.

Writes for one ``(ship_id, year)`` are expected to be atomic with respect
to each other; the in-memory store serialises all access through one
reentrant lock.

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from fueleu.exceptions import NotFoundError
from fueleu.models import (
    ComplianceBalance,
    LedgerEntry,
    Pool,
    PoolMember,
    Route,
    TransactionKind,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ComplianceRepository(Protocol):
    """Storage operations consumed by the FuelEU core."""

    # -- Compliance balances -------------------------------------------------

    def find_compliance_balance(
        self, ship_id: str, year: int
    ) -> Optional[ComplianceBalance]:
        """Stored balance for the ship-year, or None."""
        ...

    def save_compliance_balance(
        self, balance: ComplianceBalance
    ) -> ComplianceBalance:
        """Upsert a balance on ``(ship_id, year)``."""
        ...

    def get_adjusted_compliance_balance(self, ship_id: str, year: int) -> float:
        """Stored balance minus banked plus applied amounts, 0 if absent."""
        ...

    # -- Ledger --------------------------------------------------------------

    def find_ledger_entries(self, ship_id: str, year: int) -> List[LedgerEntry]:
        """Ledger entries of the ship-year, newest first."""
        ...

    def save_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """Append a ledger entry."""
        ...

    def get_net_ledger_balance(self, ship_id: str, year: int) -> float:
        """Sum of +BANK and -APPLY amounts for the ship-year."""
        ...

    def apply_ledger_entry(
        self, entry: LedgerEntry, balance: ComplianceBalance
    ) -> Tuple[LedgerEntry, ComplianceBalance]:
        """Append an APPLY entry and upsert the balance in one transaction."""
        ...

    # -- Routes --------------------------------------------------------------

    def find_all_routes(self) -> List[Route]:
        """All routes ordered by route id."""
        ...

    def find_route_by_route_id(self, route_id: str) -> Optional[Route]:
        """Route with the given id, or None."""
        ...

    def find_baseline_route(self) -> Optional[Route]:
        """Current baseline route, or None."""
        ...

    def save_route(self, route: Route) -> Route:
        """Insert or replace a route by route id."""
        ...

    def set_baseline_route(self, route_id: str) -> Route:
        """Make the route the only baseline. Raises NotFoundError."""
        ...

    # -- Pools ---------------------------------------------------------------

    def persist_pool(self, year: int, members: Sequence[PoolMember]) -> Pool:
        """Store a pool and its members atomically."""
        ...

    def find_pool(self, pool_id: str) -> Optional[Pool]:
        """Pool by id with members ordered by ship id, or None."""
        ...

    def find_pools_by_year(self, year: int) -> List[Pool]:
        """Pools of a year, newest first."""
        ...


class InMemoryRepository:
    """Thread-safe dictionary-backed ComplianceRepository.

    Example:
        >>> repo = InMemoryRepository()
        >>> repo.save_compliance_balance(
        ...     ComplianceBalance(ship_id="S1", year=2024, cb_value=1000.0)
        ... ).cb_value
        1000.0
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[str, int], ComplianceBalance] = {}
        self._ledger: List[LedgerEntry] = []
        self._routes: Dict[str, Route] = {}
        self._pools: Dict[str, Pool] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Compliance balances
    # ------------------------------------------------------------------

    def find_compliance_balance(
        self, ship_id: str, year: int
    ) -> Optional[ComplianceBalance]:
        with self._lock:
            return self._balances.get((ship_id, year))

    def save_compliance_balance(
        self, balance: ComplianceBalance
    ) -> ComplianceBalance:
        with self._lock:
            self._balances[(balance.ship_id, balance.year)] = balance
        logger.debug(
            "Stored CB %s/%d = %.2f",
            balance.ship_id, balance.year, balance.cb_value,
        )
        return balance

    def get_adjusted_compliance_balance(self, ship_id: str, year: int) -> float:
        with self._lock:
            balance = self._balances.get((ship_id, year))
            if balance is None:
                return 0.0
            return balance.cb_value - self.get_net_ledger_balance(ship_id, year)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def find_ledger_entries(self, ship_id: str, year: int) -> List[LedgerEntry]:
        with self._lock:
            matching = [
                e for e in self._ledger
                if e.ship_id == ship_id and e.year == year
            ]
        # Newest first; insertion order breaks equal timestamps.
        return [
            entry for _, entry in sorted(
                enumerate(matching),
                key=lambda pair: (pair[1].created_at, pair[0]),
                reverse=True,
            )
        ]

    def save_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        with self._lock:
            self._ledger.append(entry)
        return entry

    def apply_ledger_entry(
        self, entry: LedgerEntry, balance: ComplianceBalance
    ) -> Tuple[LedgerEntry, ComplianceBalance]:
        with self._lock:
            self._ledger.append(entry)
            self._balances[(balance.ship_id, balance.year)] = balance
        return entry, balance

    def get_net_ledger_balance(self, ship_id: str, year: int) -> float:
        with self._lock:
            return sum(
                e.signed_amount for e in self._ledger
                if e.ship_id == ship_id and e.year == year
            )

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def find_all_routes(self) -> List[Route]:
        with self._lock:
            return [self._routes[k] for k in sorted(self._routes)]

    def find_route_by_route_id(self, route_id: str) -> Optional[Route]:
        with self._lock:
            return self._routes.get(route_id)

    def find_baseline_route(self) -> Optional[Route]:
        with self._lock:
            for route_id in sorted(self._routes):
                if self._routes[route_id].is_baseline:
                    return self._routes[route_id]
        return None

    def save_route(self, route: Route) -> Route:
        with self._lock:
            self._routes[route.route_id] = route
        return route

    def set_baseline_route(self, route_id: str) -> Route:
        with self._lock:
            if route_id not in self._routes:
                raise NotFoundError(
                    f"Route {route_id} not found",
                    resource="route",
                    key={"route_id": route_id},
                )
            for key, route in list(self._routes.items()):
                flag = key == route_id
                if route.is_baseline != flag:
                    self._routes[key] = route.model_copy(
                        update={"is_baseline": flag}
                    )
            return self._routes[route_id]

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    def persist_pool(self, year: int, members: Sequence[PoolMember]) -> Pool:
        pool = Pool(year=year, members=list(members))
        with self._lock:
            self._pools[pool.id] = pool
        return pool

    def find_pool(self, pool_id: str) -> Optional[Pool]:
        with self._lock:
            pool = self._pools.get(pool_id)
        if pool is None:
            return None
        return pool.model_copy(
            update={"members": sorted(pool.members, key=lambda m: m.ship_id)}
        )

    def find_pools_by_year(self, year: int) -> List[Pool]:
        with self._lock:
            pools = [p for p in self._pools.values() if p.year == year]
        # dict order is insertion order; reverse it for newest first
        return sorted(
            reversed(pools), key=lambda p: p.created_at, reverse=True,
        )


__all__ = ["ComplianceRepository", "InMemoryRepository"]
