# -*- coding: utf-8 -*-
"""
FuelEU Service Setup
====================

Service facade for the FuelEU Maritime compliance service.

Provides ``configure_fueleu(app)``, ``get_service()`` and ``get_router()``
for FastAPI integration, plus the ``FuelEUService`` facade that wires the
four core components to a repository, the provenance tracker and the
Prometheus metrics:

    1. ComplianceCalculator  - Compliance balance from intensity and fuel
    2. ComparisonCalculator  - Route intensity against the baseline
    3. BankingLedger         - Bank / Apply transactions
    4. PoolAllocator         - Greedy surplus-to-deficit pooling

Usage:
    >>> from fastapi import FastAPI
    >>> from fueleu.setup import configure_fueleu
    >>> app = FastAPI()
    >>> configure_fueleu(app)

    >>> from fueleu.setup import get_service
    >>> svc = get_service()
    >>> result = svc.bank_surplus("R002", 2024, 1_000_000.0)

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional, Sequence, Union

from fastapi import APIRouter, FastAPI, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from fueleu.banking_ledger import BankingLedger
from fueleu.comparison_calculator import ComparisonCalculator
from fueleu.compliance_calculator import ComplianceCalculator
from fueleu.config import FuelEUConfig, get_config
from fueleu.db.base import create_db_engine, init_db
from fueleu.db.repository import SqlAlchemyRepository
from fueleu.determinism import utcnow
from fueleu.exceptions import (
    ErrorKind,
    FuelEUException,
    InvalidInputError,
    NotFoundError,
    format_exception_chain,
    is_retriable,
)
from fueleu.metrics import MetricsCollector
from fueleu.models import (
    VERSION,
    ApplyResult,
    BankingRecords,
    BankResult,
    ComparisonResult,
    ComplianceBalance,
    ComplianceResult,
    ComplianceStatus,
    HealthResponse,
    Pool,
    PoolResult,
    Route,
    RouteRef,
    display_status,
    require_ship_id,
    require_year,
)
from fueleu.pool_allocator import PoolAllocator
from fueleu.provenance import ProvenanceTracker
from fueleu.repository import ComplianceRepository
from fueleu.seed import seed_routes

logger = logging.getLogger(__name__)


# ===================================================================
# Request / response models used by the facade and API layer
# ===================================================================


class ComputeRequest(BaseModel):
    """Compliance balance computation request."""

    model_config = ConfigDict(allow_inf_nan=False)

    ship_id: str
    year: int
    actual_intensity: float
    fuel_consumption: float


class LedgerRequest(BaseModel):
    """Bank or Apply request."""

    model_config = ConfigDict(allow_inf_nan=False)

    ship_id: str
    year: int
    amount: float


class PoolRequest(BaseModel):
    """Pool creation request."""

    year: int
    ship_ids: List[str] = Field(default_factory=list)


class BalanceResponse(BaseModel):
    """Stored or adjusted compliance balance with display status.

    Attributes:
        ship_id: Ship identifier.
        year: Reporting year.
        cb_value: Balance in gCO2e.
        status: SURPLUS (> 0), DEFICIT (< 0) or NEUTRAL (== 0).
        computed_at: Timestamp of the stored balance, None for adjusted.
    """

    model_config = ConfigDict(frozen=True)

    ship_id: str
    year: int
    cb_value: float
    status: ComplianceStatus
    computed_at: Optional[datetime] = Field(default=None)


class ComparisonListResponse(BaseModel):
    """Every non-baseline route compared against the baseline."""

    model_config = ConfigDict(frozen=True)

    baseline: RouteRef
    baseline_compliant: bool
    comparisons: List[ComparisonResult] = Field(default_factory=list)


_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BUSINESS_RULE: 409,
    ErrorKind.UNAVAILABLE: 503,
}


def http_status_for(exc: FuelEUException) -> int:
    """HTTP status code for a FuelEU exception kind."""
    return _STATUS_BY_KIND.get(exc.kind, 500)


# ===================================================================
# FuelEUService facade
# ===================================================================

_singleton_lock = threading.Lock()
_singleton_instance: Optional["FuelEUService"] = None


class FuelEUService:
    """Unified facade over the FuelEU compliance core.

    Each operation is timed into Prometheus, rejected operations are
    counted by error kind, and successful results carry the SHA-256
    provenance chain hash recorded for them.

    Attributes:
        config: FuelEUConfig instance.
        repository: ComplianceRepository shared by all components.

    Example:
        >>> service = FuelEUService(repository=InMemoryRepository())
        >>> service.compute_compliance_balance("S1", 2024, 88.0, 100.0)
    """

    def __init__(
        self,
        config: Optional[FuelEUConfig] = None,
        repository: Optional[ComplianceRepository] = None,
    ) -> None:
        """Initialize the service facade.

        Args:
            config: Optional FuelEUConfig. Uses global config if None.
            repository: Optional repository. A SqlAlchemyRepository on
                ``config.database_url`` is created if None.
        """
        self.config = config if config is not None else get_config()
        self._start_time: float = time.monotonic()
        self._started: bool = False
        MetricsCollector.set_enabled(self.config.enable_metrics)

        self._engine: Any = None
        if repository is None:
            self._engine = create_db_engine(
                self.config.database_url, pool_size=self.config.pool_size,
            )
            repository = SqlAlchemyRepository(self._engine)
        self.repository: ComplianceRepository = repository

        self._provenance: Optional[ProvenanceTracker] = None
        if self.config.enable_provenance:
            self._provenance = ProvenanceTracker(
                genesis_hash=self.config.genesis_hash,
            )

        self.compliance_calculator = ComplianceCalculator(self.config)
        self.comparison_calculator = ComparisonCalculator(self.config)
        self.banking_ledger = BankingLedger(self.repository, self.config)
        self.pool_allocator = PoolAllocator(self.repository, self.config)

        logger.info(
            "FuelEUService facade created (repository=%s)",
            type(self.repository).__name__,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Create tables when SQL-backed and load reference routes."""
        if isinstance(self.repository, SqlAlchemyRepository):
            init_db(self.repository.engine)
        if self.config.seed_on_startup:
            self.seed_routes()
        self._started = True
        logger.info("FuelEUService started")

    def shutdown(self) -> None:
        """Release the engine created by this service, if any."""
        if self._engine is not None:
            self._engine.dispose()
        self._started = False
        logger.info("FuelEUService shut down")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def provenance(self) -> Optional[ProvenanceTracker]:
        """Provenance tracker, None when provenance is disabled."""
        return self._provenance

    @contextmanager
    def _observe(self, operation: str) -> Generator[None, None, None]:
        start = time.monotonic()
        try:
            yield
        except FuelEUException as exc:
            status = "failed" if exc.kind == ErrorKind.UNAVAILABLE else "rejected"
            MetricsCollector.record_calculation(operation, status)
            MetricsCollector.record_error(exc.kind.value)
            if is_retriable(exc):
                logger.error("%s failed:\n%s", operation, format_exception_chain(exc))
            else:
                logger.warning("%s %s: %s", operation, status, exc.message)
            raise
        else:
            MetricsCollector.record_calculation(operation, "success")
        finally:
            MetricsCollector.observe_duration(
                operation, time.monotonic() - start,
            )

    def _record(
        self, entity_type: str, action: str, entity_id: str, data: Any,
    ) -> str:
        if self._provenance is None:
            return ""
        return self._provenance.record(
            entity_type, action, entity_id, data=data,
        ).hash_value

    def _with_hash(self, result: Any, entity_type: str, action: str,
                   entity_id: str) -> Any:
        return result.model_copy(
            update={
                "provenance_hash": self._record(
                    entity_type, action, entity_id, result,
                )
            }
        )

    # ------------------------------------------------------------------
    # Compliance balances
    # ------------------------------------------------------------------

    def compute_compliance_balance(
        self,
        ship_id: str,
        year: int,
        actual_intensity: float,
        fuel_consumption: float,
    ) -> ComplianceResult:
        """Compute a balance and upsert it.

        Raises:
            InvalidInputError: If any argument is invalid.
        """
        with self._observe("compute_cb"):
            result = self.compliance_calculator.compute_detailed(
                ship_id, year, actual_intensity, fuel_consumption,
            )
            self.repository.save_compliance_balance(result.balance)
        return self._with_hash(
            result, "compliance_balance", "compute", f"{ship_id}:{year}",
        )

    def get_compliance_balance(self, ship_id: str, year: int) -> ComplianceBalance:
        """Stored balance, or one computed from the ship's route.

        The route whose ``route_id`` equals ``ship_id`` supplies the
        intensity and fuel; the computed balance is stored.

        Raises:
            InvalidInputError: If ship id or year is invalid.
            NotFoundError: If neither a balance nor a route exists.
        """
        require_ship_id(ship_id)
        require_year(year, self.config.min_year, self.config.max_year)

        balance = self.repository.find_compliance_balance(ship_id, year)
        if balance is not None:
            return balance

        route = self.repository.find_route_by_route_id(ship_id)
        if route is None:
            raise NotFoundError(
                f"No route data found for ship {ship_id}",
                resource="route",
                key={"route_id": ship_id},
            )
        return self.compute_compliance_balance(
            ship_id, year, route.ghg_intensity, route.fuel_consumption,
        ).balance

    def get_adjusted_compliance_balance(self, ship_id: str, year: int) -> float:
        """Adjusted balance (0 when nothing is stored)."""
        require_ship_id(ship_id)
        require_year(year, self.config.min_year, self.config.max_year)
        return self.banking_ledger.get_adjusted_cb(ship_id, year)

    # ------------------------------------------------------------------
    # Routes and comparison
    # ------------------------------------------------------------------

    def list_routes(self) -> List[Route]:
        """All routes ordered by route id."""
        routes = self.repository.find_all_routes()
        MetricsCollector.set_routes_registered(len(routes))
        return routes

    def set_baseline(self, route_id: str) -> Route:
        """Make a route the single baseline.

        Raises:
            NotFoundError: If the route does not exist.
        """
        route = self.repository.set_baseline_route(route_id)
        self._record("route", "set_baseline", route_id, route)
        return route

    def compare_routes(
        self, baseline: Route, comparison: Route,
    ) -> ComparisonResult:
        """Compare one route against a baseline route."""
        with self._observe("compare"):
            result = self.comparison_calculator.compare(baseline, comparison)
        return self._with_hash(
            result, "comparison", "compare",
            f"{baseline.route_id}:{comparison.route_id}",
        )

    def compare_routes_multiple(
        self, baseline: Route, comparisons: Sequence[Route],
    ) -> List[ComparisonResult]:
        """Compare routes against a baseline, in input order."""
        with self._observe("compare_multiple"):
            results = self.comparison_calculator.compare_multiple(
                baseline, comparisons,
            )
        return [
            self._with_hash(
                r, "comparison", "compare",
                f"{r.baseline.route_id}:{r.comparison.route_id}",
            )
            for r in results
        ]

    def get_comparison(
        self, comparison_route_id: Optional[str] = None,
    ) -> Union[ComparisonResult, ComparisonListResponse]:
        """Compare stored routes against the stored baseline.

        Args:
            comparison_route_id: Route to compare. All non-baseline
                routes are compared when None.

        Raises:
            NotFoundError: If no baseline is set or the route is missing.
        """
        baseline = self.repository.find_baseline_route()
        if baseline is None:
            raise NotFoundError("No baseline route set", resource="route")

        if comparison_route_id:
            comparison = self.repository.find_route_by_route_id(
                comparison_route_id,
            )
            if comparison is None:
                raise NotFoundError(
                    f"Comparison route {comparison_route_id} not found",
                    resource="route",
                    key={"route_id": comparison_route_id},
                )
            return self.compare_routes(baseline, comparison)

        others = [
            r for r in self.repository.find_all_routes()
            if r.route_id != baseline.route_id
        ]
        results = (
            self.compare_routes_multiple(baseline, others) if others else []
        )
        return ComparisonListResponse(
            baseline=RouteRef(
                route_id=baseline.route_id,
                ghg_intensity=baseline.ghg_intensity,
            ),
            baseline_compliant=self.comparison_calculator.is_compliant(
                baseline.ghg_intensity,
            ),
            comparisons=results,
        )

    def seed_routes(self) -> List[Route]:
        """Load the reference routes."""
        routes = seed_routes(self.repository)
        self._record("route", "seed", "reference-routes",
                     [r.route_id for r in routes])
        MetricsCollector.set_routes_registered(len(routes))
        return routes

    # ------------------------------------------------------------------
    # Banking
    # ------------------------------------------------------------------

    def bank_surplus(self, ship_id: str, year: int, amount: float) -> BankResult:
        """Bank surplus. See :meth:`BankingLedger.bank`."""
        try:
            with self._observe("bank"):
                result = self.banking_ledger.bank(ship_id, year, amount)
        except FuelEUException:
            MetricsCollector.record_ledger_transaction("BANK", "rejected")
            raise
        MetricsCollector.record_ledger_transaction(
            "BANK", "success", result.entry.amount,
        )
        return self._with_hash(
            result, "ledger_entry", "bank", result.entry.id,
        )

    def apply_banked(self, ship_id: str, year: int, amount: float) -> ApplyResult:
        """Apply banked surplus. See :meth:`BankingLedger.apply`."""
        try:
            with self._observe("apply"):
                result = self.banking_ledger.apply(ship_id, year, amount)
        except FuelEUException:
            MetricsCollector.record_ledger_transaction("APPLY", "rejected")
            raise
        MetricsCollector.record_ledger_transaction(
            "APPLY", "success", result.entry.amount,
        )
        return self._with_hash(
            result, "ledger_entry", "apply", result.entry.id,
        )

    def get_banking_records(self, ship_id: str, year: int) -> BankingRecords:
        """Ledger entries (newest first) and net banked balance."""
        records = self.banking_ledger.get_records(ship_id, year)
        return BankingRecords(
            ship_id=ship_id,
            year=year,
            records=records,
            available_balance=self.banking_ledger.get_available_balance(
                ship_id, year,
            ),
        )

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    def create_pool(self, year: int, ship_ids: Sequence[str]) -> PoolResult:
        """Create a pool of at least ``config.min_pool_members`` ships.

        Raises:
            InvalidInputError: If fewer ships than the configured minimum
                are given, or the allocator rejects the input.
            BusinessRuleViolation: If the pool rules are broken.
        """
        try:
            with self._observe("create_pool"):
                if len(ship_ids) < self.config.min_pool_members:
                    raise InvalidInputError(
                        f"Pool must have at least "
                        f"{self.config.min_pool_members} ships",
                        field="ship_ids",
                        value=list(ship_ids),
                    )
                result = self.pool_allocator.allocate(year, ship_ids)
        except FuelEUException:
            MetricsCollector.record_pool("rejected")
            raise
        MetricsCollector.record_pool("success", result.pool.member_count)
        return self._with_hash(result, "pool", "allocate", result.pool.id)

    def get_pool(self, pool_id: str) -> Pool:
        """Pool by id.

        Raises:
            NotFoundError: If the pool does not exist.
        """
        pool = self.repository.find_pool(pool_id)
        if pool is None:
            raise NotFoundError(
                f"Pool {pool_id} not found",
                resource="pool",
                key={"pool_id": pool_id},
            )
        return pool

    def list_pools(self, year: int) -> List[Pool]:
        """Pools of a year, newest first."""
        require_year(year, self.config.min_year, self.config.max_year)
        return self.repository.find_pools_by_year(year)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def health_check(self) -> HealthResponse:
        """Service health including repository reachability."""
        components: Dict[str, str] = {
            "repository": type(self.repository).__name__,
            "provenance": "enabled" if self._provenance else "disabled",
            "metrics": "enabled" if self.config.enable_metrics else "disabled",
        }
        status = "healthy"
        try:
            self.repository.find_baseline_route()
        except FuelEUException as exc:
            logger.error("Health check failed: %s", exc)
            components["repository_status"] = "unavailable"
            status = "unhealthy"
        else:
            components["repository_status"] = "ok"
        if self._provenance is not None:
            components["provenance_entries"] = str(self._provenance.entry_count)
        return HealthResponse(
            status=status,
            version=VERSION,
            timestamp=utcnow(),
            components=components,
        )

    @property
    def uptime_seconds(self) -> float:
        """Seconds since the facade was created."""
        return time.monotonic() - self._start_time


# ===================================================================
# Singleton access and FastAPI integration
# ===================================================================


def get_service() -> FuelEUService:
    """Get or create the singleton FuelEUService.

    Returns:
        FuelEUService singleton instance.
    """
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = FuelEUService()
    return _singleton_instance


def set_service(service: Optional[FuelEUService]) -> None:
    """Install (or clear with None) the singleton service."""
    global _singleton_instance
    with _singleton_lock:
        _singleton_instance = service


def _http_error(exc: FuelEUException) -> HTTPException:
    headers = {"Retry-After": "1"} if is_retriable(exc) else None
    return HTTPException(
        status_code=http_status_for(exc), detail=exc.to_dict(), headers=headers,
    )


def get_router(prefix: Optional[str] = None) -> APIRouter:
    """Build the FuelEU API router.

    Args:
        prefix: Route prefix. Defaults to ``config.api_prefix``.

    Returns:
        FastAPI APIRouter with the health, routes, compliance, banking
        and pools endpoints.
    """
    router = APIRouter(
        prefix=prefix if prefix is not None else get_config().api_prefix,
        tags=["fueleu"],
    )

    def _svc() -> FuelEUService:
        """Get the singleton service for route handlers."""
        return get_service()

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------
    @router.get("/health", response_model=HealthResponse)
    def get_health() -> HealthResponse:
        """Service health."""
        return _svc().health_check()

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------
    @router.get("/routes", response_model=List[Route])
    def get_routes() -> List[Route]:
        """All routes ordered by route id."""
        try:
            return _svc().list_routes()
        except FuelEUException as exc:
            raise _http_error(exc) from exc

    @router.get("/routes/comparison")
    def get_routes_comparison(
        comparison_route_id: Optional[str] = Query(None),
    ) -> Dict[str, Any]:
        """Compare one route, or all routes, against the baseline."""
        try:
            result = _svc().get_comparison(comparison_route_id)
        except FuelEUException as exc:
            raise _http_error(exc) from exc
        return result.model_dump(mode="json")

    @router.post("/routes/{route_id}/baseline", response_model=Route)
    def post_route_baseline(route_id: str) -> Route:
        """Make a route the baseline."""
        try:
            return _svc().set_baseline(route_id)
        except FuelEUException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------
    @router.post(
        "/compliance/compute", response_model=ComplianceResult, status_code=201,
    )
    def post_compute(request: ComputeRequest) -> ComplianceResult:
        """Compute and store a compliance balance."""
        try:
            return _svc().compute_compliance_balance(
                request.ship_id,
                request.year,
                request.actual_intensity,
                request.fuel_consumption,
            )
        except FuelEUException as exc:
            raise _http_error(exc) from exc

    @router.get("/compliance/cb", response_model=BalanceResponse)
    def get_compliance_cb(
        ship_id: str = Query(...),
        year: int = Query(...),
    ) -> BalanceResponse:
        """Stored balance, computed from the ship's route if absent."""
        try:
            balance = _svc().get_compliance_balance(ship_id, year)
        except FuelEUException as exc:
            raise _http_error(exc) from exc
        return BalanceResponse(
            ship_id=balance.ship_id,
            year=balance.year,
            cb_value=balance.cb_value,
            status=balance.display_status(),
            computed_at=balance.computed_at,
        )

    @router.get("/compliance/adjusted-cb", response_model=BalanceResponse)
    def get_compliance_adjusted_cb(
        ship_id: str = Query(...),
        year: int = Query(...),
    ) -> BalanceResponse:
        """Balance net of banked and applied amounts."""
        try:
            adjusted = _svc().get_adjusted_compliance_balance(ship_id, year)
        except FuelEUException as exc:
            raise _http_error(exc) from exc
        return BalanceResponse(
            ship_id=ship_id,
            year=year,
            cb_value=adjusted,
            status=display_status(adjusted),
        )

    # ------------------------------------------------------------------
    # Banking
    # ------------------------------------------------------------------
    @router.get("/banking/records", response_model=BankingRecords)
    def get_banking_records(
        ship_id: str = Query(...),
        year: int = Query(...),
    ) -> BankingRecords:
        """Ledger entries and net banked balance."""
        try:
            return _svc().get_banking_records(ship_id, year)
        except FuelEUException as exc:
            raise _http_error(exc) from exc

    @router.post("/banking/bank", response_model=BankResult, status_code=201)
    def post_bank(request: LedgerRequest) -> BankResult:
        """Bank surplus."""
        try:
            return _svc().bank_surplus(
                request.ship_id, request.year, request.amount,
            )
        except FuelEUException as exc:
            raise _http_error(exc) from exc

    @router.post("/banking/apply", response_model=ApplyResult)
    def post_apply(request: LedgerRequest) -> ApplyResult:
        """Apply banked surplus."""
        try:
            return _svc().apply_banked(
                request.ship_id, request.year, request.amount,
            )
        except FuelEUException as exc:
            raise _http_error(exc) from exc

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------
    @router.post("/pools", response_model=PoolResult, status_code=201)
    def post_pool(request: PoolRequest) -> PoolResult:
        """Create a pool."""
        try:
            return _svc().create_pool(request.year, request.ship_ids)
        except FuelEUException as exc:
            raise _http_error(exc) from exc

    @router.get("/pools", response_model=List[Pool])
    def get_pools(year: int = Query(...)) -> List[Pool]:
        """Pools of a year, newest first."""
        try:
            return _svc().list_pools(year)
        except FuelEUException as exc:
            raise _http_error(exc) from exc

    @router.get("/pools/{pool_id}", response_model=Pool)
    def get_pool(pool_id: str) -> Pool:
        """Pool by id."""
        try:
            return _svc().get_pool(pool_id)
        except FuelEUException as exc:
            raise _http_error(exc) from exc

    return router


def configure_fueleu(
    app: FastAPI,
    config: Optional[FuelEUConfig] = None,
    repository: Optional[ComplianceRepository] = None,
) -> FuelEUService:
    """Configure the FuelEU service on a FastAPI application.

    Creates and starts the service, stores it in ``app.state`` and the
    module singleton, and mounts the API router.

    Args:
        app: FastAPI application instance.
        config: Optional FuelEUConfig.
        repository: Optional repository (tests pass an in-memory one).

    Returns:
        The started FuelEUService.
    """
    service = FuelEUService(config=config, repository=repository)
    service.startup()
    set_service(service)
    app.state.fueleu_service = service
    app.include_router(get_router(service.config.api_prefix))
    logger.info("FuelEU service configured on app")
    return service


__all__ = [
    "ComputeRequest",
    "LedgerRequest",
    "PoolRequest",
    "BalanceResponse",
    "ComparisonListResponse",
    "FuelEUService",
    "http_status_for",
    "get_service",
    "set_service",
    "get_router",
    "configure_fueleu",
]
