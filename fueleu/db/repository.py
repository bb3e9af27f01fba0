# -*- coding: utf-8 -*-
"""
SQLAlchemy ComplianceRepository

Relational implementation of :class:`fueleu.repository.ComplianceRepository`
over the tables in :mod:`fueleu.db.models`. Each public method runs in one
session transaction (commit on success, rollback on error). Driver and
connection failures surface as :class:`~fueleu.exceptions.UnavailableError`
with the SQLAlchemy error chained as ``__cause__``.

Example:
    >>> from fueleu.db.base import create_db_engine, init_db
    >>> engine = create_db_engine("sqlite://")
    >>> init_db(engine)
    >>> repo = SqlAlchemyRepository(engine)
    >>> repo.get_adjusted_compliance_balance("S1", 2024)
    0.0

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator, List, Optional, Sequence, Tuple

from sqlalchemy import case, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from fueleu.db.base import get_engine, get_session_factory, session_scope
from fueleu.db.models import (
    BankEntryRecord,
    PoolMemberRecord,
    PoolRecord,
    RouteRecord,
    ShipComplianceRecord,
)
from fueleu.exceptions import NotFoundError, UnavailableError
from fueleu.models import (
    ComplianceBalance,
    LedgerEntry,
    Pool,
    PoolMember,
    Route,
    TransactionKind,
)

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _route_from_record(record: RouteRecord) -> Route:
    return Route(
        route_id=record.route_id,
        vessel_type=record.vessel_type,
        fuel_type=record.fuel_type,
        year=record.year,
        ghg_intensity=record.ghg_intensity,
        fuel_consumption=record.fuel_consumption,
        distance=record.distance,
        total_emissions=record.total_emissions,
        is_baseline=record.is_baseline,
    )


def _balance_from_record(record: ShipComplianceRecord) -> ComplianceBalance:
    return ComplianceBalance(
        ship_id=record.ship_id,
        year=record.year,
        cb_value=record.cb_gco2eq,
        computed_at=_as_utc(record.computed_at),
    )


def _entry_from_record(record: BankEntryRecord) -> LedgerEntry:
    return LedgerEntry(
        id=record.entry_id,
        ship_id=record.ship_id,
        year=record.year,
        amount=record.amount_gco2eq,
        kind=TransactionKind(record.kind),
        created_at=_as_utc(record.created_at),
    )


def _entry_record(entry: LedgerEntry) -> BankEntryRecord:
    return BankEntryRecord(
        entry_id=entry.id,
        ship_id=entry.ship_id,
        year=entry.year,
        amount_gco2eq=entry.amount,
        kind=entry.kind.value,
        created_at=entry.created_at,
    )


def _pool_from_record(record: PoolRecord) -> Pool:
    return Pool(
        id=record.pool_id,
        year=record.year,
        members=[
            PoolMember(
                ship_id=m.ship_id, cb_before=m.cb_before, cb_after=m.cb_after,
            )
            for m in sorted(record.members, key=lambda m: m.ship_id)
        ],
        created_at=_as_utc(record.created_at),
    )


class SqlAlchemyRepository:
    """ComplianceRepository backed by a SQLAlchemy engine.

    Attributes:
        engine: SQLAlchemy engine the repository writes to.
    """

    def __init__(self, engine: Optional[Engine] = None) -> None:
        """Initialize the repository.

        Args:
            engine: Engine to use. Falls back to the configured singleton
                engine and session factory when None.
        """
        if engine is None:
            self.engine = get_engine()
            self._factory: sessionmaker = get_session_factory(self.engine)
        else:
            self.engine = engine
            self._factory = sessionmaker(
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
                bind=engine,
            )

    @contextmanager
    def _session(self, operation: str) -> Generator[Session, None, None]:
        try:
            with session_scope(self._factory) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Repository operation %s failed: %s", operation, exc)
            raise UnavailableError(
                f"Compliance store unavailable during {operation}",
                operation=operation,
            ) from exc

    # ------------------------------------------------------------------
    # Compliance balances
    # ------------------------------------------------------------------

    def find_compliance_balance(
        self, ship_id: str, year: int
    ) -> Optional[ComplianceBalance]:
        with self._session("find_compliance_balance") as session:
            record = session.execute(
                select(ShipComplianceRecord).where(
                    ShipComplianceRecord.ship_id == ship_id,
                    ShipComplianceRecord.year == year,
                )
            ).scalar_one_or_none()
            return _balance_from_record(record) if record else None

    def save_compliance_balance(
        self, balance: ComplianceBalance
    ) -> ComplianceBalance:
        with self._session("save_compliance_balance") as session:
            self._upsert_balance(session, balance)
        logger.debug(
            "Upserted CB %s/%d = %.2f",
            balance.ship_id, balance.year, balance.cb_value,
        )
        return balance

    @staticmethod
    def _upsert_balance(session: Session, balance: ComplianceBalance) -> None:
        record = session.execute(
            select(ShipComplianceRecord).where(
                ShipComplianceRecord.ship_id == balance.ship_id,
                ShipComplianceRecord.year == balance.year,
            ).with_for_update()
        ).scalar_one_or_none()
        if record is None:
            record = ShipComplianceRecord(
                ship_id=balance.ship_id, year=balance.year,
            )
            session.add(record)
        record.cb_gco2eq = balance.cb_value
        record.computed_at = balance.computed_at

    def get_adjusted_compliance_balance(self, ship_id: str, year: int) -> float:
        with self._session("get_adjusted_compliance_balance") as session:
            stored = session.execute(
                select(ShipComplianceRecord.cb_gco2eq).where(
                    ShipComplianceRecord.ship_id == ship_id,
                    ShipComplianceRecord.year == year,
                )
            ).scalar_one_or_none()
            if stored is None:
                return 0.0
            return stored - self._net_ledger(session, ship_id, year)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def find_ledger_entries(self, ship_id: str, year: int) -> List[LedgerEntry]:
        with self._session("find_ledger_entries") as session:
            records = session.execute(
                select(BankEntryRecord)
                .where(
                    BankEntryRecord.ship_id == ship_id,
                    BankEntryRecord.year == year,
                )
                .order_by(
                    BankEntryRecord.created_at.desc(),
                    BankEntryRecord.seq.desc(),
                )
            ).scalars().all()
            return [_entry_from_record(r) for r in records]

    def save_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        with self._session("save_ledger_entry") as session:
            session.add(_entry_record(entry))
        return entry

    def apply_ledger_entry(
        self, entry: LedgerEntry, balance: ComplianceBalance
    ) -> Tuple[LedgerEntry, ComplianceBalance]:
        with self._session("apply_ledger_entry") as session:
            session.add(_entry_record(entry))
            session.flush()
            self._upsert_balance(session, balance)
        logger.debug(
            "Applied entry %s and upserted CB %s/%d = %.2f",
            entry.id, balance.ship_id, balance.year, balance.cb_value,
        )
        return entry, balance

    def get_net_ledger_balance(self, ship_id: str, year: int) -> float:
        with self._session("get_net_ledger_balance") as session:
            return self._net_ledger(session, ship_id, year)

    @staticmethod
    def _net_ledger(session: Session, ship_id: str, year: int) -> float:
        signed = case(
            (BankEntryRecord.kind == TransactionKind.BANK.value,
             BankEntryRecord.amount_gco2eq),
            else_=-BankEntryRecord.amount_gco2eq,
        )
        total = session.execute(
            select(func.coalesce(func.sum(signed), 0.0)).where(
                BankEntryRecord.ship_id == ship_id,
                BankEntryRecord.year == year,
            )
        ).scalar_one()
        return float(total)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def find_all_routes(self) -> List[Route]:
        with self._session("find_all_routes") as session:
            records = session.execute(
                select(RouteRecord).order_by(RouteRecord.route_id)
            ).scalars().all()
            return [_route_from_record(r) for r in records]

    def find_route_by_route_id(self, route_id: str) -> Optional[Route]:
        with self._session("find_route_by_route_id") as session:
            record = session.execute(
                select(RouteRecord).where(RouteRecord.route_id == route_id)
            ).scalar_one_or_none()
            return _route_from_record(record) if record else None

    def find_baseline_route(self) -> Optional[Route]:
        with self._session("find_baseline_route") as session:
            record = session.execute(
                select(RouteRecord)
                .where(RouteRecord.is_baseline.is_(True))
                .order_by(RouteRecord.route_id)
                .limit(1)
            ).scalar_one_or_none()
            return _route_from_record(record) if record else None

    def save_route(self, route: Route) -> Route:
        with self._session("save_route") as session:
            record = session.execute(
                select(RouteRecord).where(RouteRecord.route_id == route.route_id)
            ).scalar_one_or_none()
            if record is None:
                record = RouteRecord(route_id=route.route_id)
                session.add(record)
            record.vessel_type = route.vessel_type
            record.fuel_type = route.fuel_type
            record.year = route.year
            record.ghg_intensity = route.ghg_intensity
            record.fuel_consumption = route.fuel_consumption
            record.distance = route.distance
            record.total_emissions = route.total_emissions
            record.is_baseline = route.is_baseline
        return route

    def set_baseline_route(self, route_id: str) -> Route:
        with self._session("set_baseline_route") as session:
            record = session.execute(
                select(RouteRecord).where(RouteRecord.route_id == route_id)
            ).scalar_one_or_none()
            if record is None:
                raise NotFoundError(
                    f"Route {route_id} not found",
                    resource="route",
                    key={"route_id": route_id},
                )
            session.execute(
                update(RouteRecord)
                .where(RouteRecord.route_id != route_id)
                .values(is_baseline=False)
            )
            record.is_baseline = True
            session.flush()
            logger.info("Baseline route set to %s", route_id)
            return _route_from_record(record)

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    def persist_pool(self, year: int, members: Sequence[PoolMember]) -> Pool:
        pool = Pool(year=year, members=list(members))
        with self._session("persist_pool") as session:
            session.add(
                PoolRecord(
                    pool_id=pool.id,
                    year=pool.year,
                    created_at=pool.created_at,
                    members=[
                        PoolMemberRecord(
                            ship_id=m.ship_id,
                            cb_before=m.cb_before,
                            cb_after=m.cb_after,
                        )
                        for m in pool.members
                    ],
                )
            )
        return pool

    def find_pool(self, pool_id: str) -> Optional[Pool]:
        with self._session("find_pool") as session:
            record = session.execute(
                select(PoolRecord)
                .options(selectinload(PoolRecord.members))
                .where(PoolRecord.pool_id == pool_id)
            ).scalar_one_or_none()
            return _pool_from_record(record) if record else None

    def find_pools_by_year(self, year: int) -> List[Pool]:
        with self._session("find_pools_by_year") as session:
            records = session.execute(
                select(PoolRecord)
                .options(selectinload(PoolRecord.members))
                .where(PoolRecord.year == year)
                .order_by(PoolRecord.created_at.desc(), PoolRecord.seq.desc())
            ).scalars().all()
            return [_pool_from_record(r) for r in records]


__all__ = ["SqlAlchemyRepository"]
