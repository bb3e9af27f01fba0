# -*- coding: utf-8 -*-
"""Tests for the SQLAlchemy repository."""

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from fueleu.banking_ledger import BankingLedger
from fueleu.db.base import (
    create_db_engine,
    get_engine,
    get_session_factory,
    init_db,
    reset_engine,
)
from fueleu.db.repository import SqlAlchemyRepository
from fueleu.exceptions import NotFoundError, UnavailableError
from fueleu.models import ComplianceBalance, LedgerEntry, PoolMember, TransactionKind
from fueleu.pool_allocator import PoolAllocator
from fueleu.repository import ComplianceRepository
from fueleu.seed import seed_routes

pytestmark = pytest.mark.integration


class TestBalances:
    """Compliance balance storage."""

    def test_satisfies_protocol(self, sql_repository):
        """The repository implements ComplianceRepository."""
        assert isinstance(sql_repository, ComplianceRepository)

    def test_save_and_find(self, sql_repository, frozen_clock):
        """A stored balance reads back with a UTC timestamp."""
        sql_repository.save_compliance_balance(
            ComplianceBalance(ship_id="S1", year=2024, cb_value=1234.5)
        )

        found = sql_repository.find_compliance_balance("S1", 2024)

        assert found.cb_value == 1234.5
        assert found.computed_at == frozen_clock
        assert sql_repository.find_compliance_balance("S1", 2025) is None

    def test_upsert_by_ship_year(self, sql_repository):
        """Saving the same ship-year replaces the value."""
        for value in (10.0, -20.0):
            sql_repository.save_compliance_balance(
                ComplianceBalance(ship_id="S1", year=2024, cb_value=value)
            )

        assert sql_repository.find_compliance_balance("S1", 2024).cb_value == -20.0

    def test_adjusted_balance(self, sql_repository):
        """Adjusted = stored - BANK + APPLY, 0 when nothing is stored."""
        sql_repository.save_compliance_balance(
            ComplianceBalance(ship_id="S1", year=2024, cb_value=1000.0)
        )
        for amount, kind in ((300.0, TransactionKind.BANK), (50.0, TransactionKind.APPLY)):
            sql_repository.save_ledger_entry(
                LedgerEntry(ship_id="S1", year=2024, amount=amount, kind=kind)
            )

        assert sql_repository.get_net_ledger_balance("S1", 2024) == 250.0
        assert sql_repository.get_adjusted_compliance_balance("S1", 2024) == 750.0
        assert sql_repository.get_adjusted_compliance_balance("S2", 2024) == 0.0
        assert sql_repository.get_net_ledger_balance("S2", 2024) == 0.0


class TestLedgerAndRoutes:
    """Ledger ordering and route baseline handling."""

    def test_ledger_newest_first(self, sql_repository):
        """Equal timestamps fall back to insertion order, newest first."""
        ids = []
        for amount in (1.0, 2.0, 3.0):
            entry = sql_repository.save_ledger_entry(
                LedgerEntry(ship_id="S1", year=2024, amount=amount,
                            kind=TransactionKind.BANK)
            )
            ids.append(entry.id)

        found = sql_repository.find_ledger_entries("S1", 2024)

        assert [e.id for e in found] == list(reversed(ids))

    def test_ledger_entry_round_trip(self, sql_repository):
        """A reloaded entry equals the saved one."""
        entry = sql_repository.save_ledger_entry(
            LedgerEntry(ship_id="S1", year=2024, amount=12.5,
                        kind=TransactionKind.APPLY)
        )

        assert sql_repository.find_ledger_entries("S1", 2024) == [entry]

    def test_seed_and_baseline(self, sql_repository):
        """Seeding stores five routes and a single baseline."""
        routes = seed_routes(sql_repository)

        assert [r.route_id for r in routes] == ["R001", "R002", "R003", "R004", "R005"]
        assert sql_repository.find_baseline_route().route_id == "R002"

        sql_repository.set_baseline_route("R005")

        assert sql_repository.find_baseline_route().route_id == "R005"
        assert sum(r.is_baseline for r in sql_repository.find_all_routes()) == 1

    def test_unknown_baseline(self, sql_repository):
        """Setting an unknown baseline raises NotFoundError."""
        with pytest.raises(NotFoundError):
            sql_repository.set_baseline_route("R404")


class TestPools:
    """Pool persistence."""

    def test_persist_and_find(self, sql_repository):
        """Members read back ordered by ship id."""
        pool = sql_repository.persist_pool(2024, [
            PoolMember(ship_id="Z", cb_before=100.0, cb_after=70.0),
            PoolMember(ship_id="A", cb_before=-30.0, cb_after=0.0),
        ])

        found = sql_repository.find_pool(pool.id)

        assert [m.ship_id for m in found.members] == ["A", "Z"]
        assert found.total_cb_after == 70.0
        assert sql_repository.find_pool("missing") is None

    def test_pools_by_year_newest_first(self, sql_repository):
        """Pools of a year are listed newest first."""
        members = [PoolMember(ship_id="A", cb_before=1.0, cb_after=1.0)]
        first = sql_repository.persist_pool(2024, members)
        second = sql_repository.persist_pool(2024, members)
        sql_repository.persist_pool(2025, members)

        assert [p.id for p in sql_repository.find_pools_by_year(2024)] == [
            second.id, first.id,
        ]

    def test_pool_round_trip(self, sql_repository):
        """A reloaded pool equals the persisted one."""
        pool = sql_repository.persist_pool(2024, [
            PoolMember(ship_id="A", cb_before=-30.0, cb_after=0.0),
            PoolMember(ship_id="B", cb_before=100.0, cb_after=70.0),
        ])

        assert sql_repository.find_pool(pool.id) == pool


class TestWithCoreComponents:
    """Ledger and allocator running against SQL storage."""

    def test_bank_apply_and_pool(self, sql_repository, config):
        """Full bank, apply and pool flow persists correctly."""
        ledger = BankingLedger(sql_repository, config)
        allocator = PoolAllocator(sql_repository, config)
        sql_repository.save_compliance_balance(
            ComplianceBalance(ship_id="A", year=2024, cb_value=500.0)
        )
        sql_repository.save_compliance_balance(
            ComplianceBalance(ship_id="B", year=2024, cb_value=-150.0)
        )

        ledger.bank("A", 2024, 200.0)
        ledger.apply("A", 2024, 50.0)
        result = allocator.allocate(2024, ["A", "B"])

        # stored 550, net banked 150 -> adjusted 400
        members = {m.ship_id: m for m in result.pool.members}
        assert members["A"].cb_before == 400.0
        assert members["A"].cb_after == 250.0
        assert members["B"].cb_after == 0.0
        assert [e.kind for e in ledger.get_records("A", 2024)] == [
            TransactionKind.APPLY, TransactionKind.BANK,
        ]

    def test_apply_commits_entry_and_balance(self, sql_repository, config):
        """A successful Apply stores the entry and the raised balance."""
        ledger = BankingLedger(sql_repository, config)
        sql_repository.save_compliance_balance(
            ComplianceBalance(ship_id="S1", year=2024, cb_value=1000.0)
        )
        ledger.bank("S1", 2024, 500.0)

        result = ledger.apply("S1", 2024, 300.0)

        assert sql_repository.find_compliance_balance("S1", 2024) == result.updated_balance
        assert sql_repository.get_net_ledger_balance("S1", 2024) == 200.0


class TestFailures:
    """Store failures surface as UnavailableError."""

    def test_apply_rolls_back_entry_when_balance_write_fails(
        self, sql_repository, config, monkeypatch
    ):
        """Entry and balance of an Apply commit together or not at all."""
        ledger = BankingLedger(sql_repository, config)
        sql_repository.save_compliance_balance(
            ComplianceBalance(ship_id="S1", year=2024, cb_value=1000.0)
        )
        ledger.bank("S1", 2024, 500.0)

        def failing_upsert(session, balance):
            raise OperationalError("UPDATE ship_compliance", {}, Exception("disk I/O error"))

        monkeypatch.setattr(
            SqlAlchemyRepository, "_upsert_balance", staticmethod(failing_upsert)
        )

        with pytest.raises(UnavailableError) as exc_info:
            ledger.apply("S1", 2024, 300.0)

        assert exc_info.value.operation == "apply_ledger_entry"
        assert sql_repository.get_net_ledger_balance("S1", 2024) == 500.0
        assert sql_repository.find_compliance_balance("S1", 2024).cb_value == 1000.0
        assert [e.kind for e in sql_repository.find_ledger_entries("S1", 2024)] == [
            TransactionKind.BANK,
        ]

    def test_missing_schema_is_unavailable(self):
        """Driver errors are wrapped with the SQLAlchemy cause chained."""
        engine = create_db_engine("sqlite://")
        repo = SqlAlchemyRepository(engine)
        try:
            with pytest.raises(UnavailableError) as exc_info:
                repo.find_all_routes()
        finally:
            engine.dispose()

        assert exc_info.value.operation == "find_all_routes"
        assert isinstance(exc_info.value.__cause__, SQLAlchemyError)


class TestDefaultEngine:
    """Singleton engine taken from configuration."""

    def test_repository_uses_configured_engine(self):
        """Without an engine the configured database URL is used."""
        reset_engine()
        try:
            init_db()
            repo = SqlAlchemyRepository()
            assert repo.engine is get_engine()
            assert repo.find_all_routes() == []
        finally:
            reset_engine()

    def test_session_factory_follows_engine(self):
        """A factory cached for one engine is rebuilt for another."""
        first = create_db_engine("sqlite://")
        second = create_db_engine("sqlite://")
        reset_engine()
        try:
            assert get_session_factory(first).kw["bind"] is first
            assert get_session_factory(second).kw["bind"] is second
            assert get_session_factory(second) is get_session_factory(second)
            assert get_session_factory().kw["bind"] is get_engine()
        finally:
            reset_engine()
            first.dispose()
            second.dispose()
