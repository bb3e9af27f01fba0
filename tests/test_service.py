# -*- coding: utf-8 -*-
"""Tests for the FuelEUService facade."""

import dataclasses

import pytest
from prometheus_client import REGISTRY

from fueleu.exceptions import BusinessRuleViolation, InvalidInputError, NotFoundError
from fueleu.models import ComparisonResult, Route
from fueleu.setup import ComparisonListResponse, FuelEUService


class TestComplianceBalances:
    """Computing and reading balances."""

    def test_compute_stores_and_hashes(self, service, repository):
        """Computed balances are stored and carry a provenance hash."""
        result = service.compute_compliance_balance("S1", 2024, 88.0, 100.0)

        assert repository.find_compliance_balance("S1", 2024) == result.balance
        assert len(result.provenance_hash) == 64
        assert service.provenance.verify_chain()

    def test_compute_upserts(self, service, repository):
        """A second computation replaces the first."""
        service.compute_compliance_balance("S1", 2024, 88.0, 100.0)
        result = service.compute_compliance_balance("S1", 2024, 91.0, 100.0)

        assert repository.find_compliance_balance("S1", 2024).cb_value == result.balance.cb_value
        assert result.balance.cb_value < 0

    def test_get_stored_balance(self, service, repository, store_balance):
        """A stored balance is returned as is."""
        store_balance(repository, "S1", 2024, 1000.0)

        assert service.get_compliance_balance("S1", 2024).cb_value == 1000.0

    def test_get_balance_computed_from_route(self, service, seeded_repository):
        """A missing balance is computed from the ship's route and stored."""
        balance = service.get_compliance_balance("R002", 2024)

        assert balance.cb_value == pytest.approx(263_082_240.0)
        assert seeded_repository.find_compliance_balance("R002", 2024) == balance

    def test_get_balance_without_route(self, service):
        """No balance and no route is a lookup failure."""
        with pytest.raises(NotFoundError, match="No route data found for ship S9"):
            service.get_compliance_balance("S9", 2024)

    def test_adjusted_balance(self, service, repository, store_balance):
        """Adjusted balance nets out banked amounts."""
        store_balance(repository, "S1", 2024, 1000.0)
        service.bank_surplus("S1", 2024, 300.0)

        assert service.get_adjusted_compliance_balance("S1", 2024) == 700.0
        assert service.get_adjusted_compliance_balance("S2", 2024) == 0.0


class TestRoutes:
    """Routes, baseline and comparison."""

    def test_list_routes(self, service, seeded_repository):
        """Routes are listed by route id with R002 as baseline."""
        routes = service.list_routes()

        assert [r.route_id for r in routes] == ["R001", "R002", "R003", "R004", "R005"]
        assert [r.route_id for r in routes if r.is_baseline] == ["R002"]

    def test_seed_is_idempotent(self, service, seeded_repository):
        """Seeding twice keeps five routes and the current baseline."""
        service.set_baseline("R004")
        routes = service.seed_routes()

        assert len(routes) == 5
        assert seeded_repository.find_baseline_route().route_id == "R004"

    def test_set_baseline_is_exclusive(self, service, seeded_repository):
        """Only one route is the baseline."""
        route = service.set_baseline("R001")

        assert route.is_baseline
        assert [r.route_id for r in service.list_routes() if r.is_baseline] == ["R001"]

    def test_set_unknown_baseline(self, service, seeded_repository):
        """Unknown routes cannot become the baseline."""
        with pytest.raises(NotFoundError, match="Route R999 not found"):
            service.set_baseline("R999")

    def test_comparison_without_baseline(self, service):
        """Comparison needs a baseline."""
        with pytest.raises(NotFoundError, match="No baseline route set"):
            service.get_comparison()

    def test_compare_all_routes(self, service, seeded_repository):
        """All other routes are compared against the baseline."""
        result = service.get_comparison()

        assert isinstance(result, ComparisonListResponse)
        assert result.baseline.route_id == "R002"
        assert result.baseline_compliant is True
        assert [c.comparison.route_id for c in result.comparisons] == [
            "R001", "R003", "R004", "R005",
        ]
        assert [c.compliant for c in result.comparisons] == [False, False, True, False]

    def test_compare_one_route(self, service, seeded_repository):
        """A single route can be compared."""
        result = service.get_comparison("R001")

        assert isinstance(result, ComparisonResult)
        assert result.percent_diff == pytest.approx(3.409090909)
        assert len(result.provenance_hash) == 64

    def test_compare_unknown_route(self, service, seeded_repository):
        """Unknown comparison routes are reported."""
        with pytest.raises(NotFoundError, match="Comparison route R999 not found"):
            service.get_comparison("R999")

    def test_only_baseline_stored(self, service, repository):
        """With no other routes the comparison list is empty."""
        repository.save_route(Route(route_id="B", year=2024, ghg_intensity=88.0,
                                    is_baseline=True))

        result = service.get_comparison()

        assert result.comparisons == []


class TestBankingAndPools:
    """Banking and pooling through the facade."""

    def test_bank_and_apply(self, service, repository, store_balance):
        """Bank then apply updates ledger and stored balance."""
        store_balance(repository, "S1", 2024, 1000.0)

        bank = service.bank_surplus("S1", 2024, 400.0)
        applied = service.apply_banked("S1", 2024, 100.0)
        records = service.get_banking_records("S1", 2024)

        assert bank.provenance_hash and applied.provenance_hash
        assert bank.provenance_hash != applied.provenance_hash
        assert applied.cb_after == 1100.0
        assert records.available_balance == 300.0
        assert [r.id for r in records.records] == [applied.entry.id, bank.entry.id]

    def test_rejected_bank_counts_error(self, service, repository, store_balance):
        """Rejected operations increment the error counter."""
        labels = {"kind": "BUSINESS_RULE"}
        before = REGISTRY.get_sample_value("gl_fueleu_errors_total", labels) or 0.0
        store_balance(repository, "S1", 2024, -10.0)

        with pytest.raises(BusinessRuleViolation):
            service.bank_surplus("S1", 2024, 1.0)

        assert REGISTRY.get_sample_value("gl_fueleu_errors_total", labels) == before + 1

    def test_pool_minimum_members(self, service):
        """The service requires the configured minimum of ships."""
        with pytest.raises(InvalidInputError, match="at least 2 ships"):
            service.create_pool(2024, ["A"])

    def test_pool_minimum_configurable(self, config, repository, store_balance):
        """min_pool_members=1 allows a single-ship pool."""
        svc = FuelEUService(dataclasses.replace(config, min_pool_members=1), repository)
        store_balance(repository, "A", 2024, 5.0)

        assert svc.create_pool(2024, ["A"]).pool.member_count == 1

    def test_create_get_and_list_pools(self, service, repository, store_balance):
        """Pools can be fetched by id and listed newest first."""
        store_balance(repository, "A", 2024, 150.0)
        store_balance(repository, "B", 2024, -30.0)
        store_balance(repository, "C", 2024, -80.0)

        first = service.create_pool(2024, ["B", "A"])
        second = service.create_pool(2024, ["A", "B", "C"])

        assert second.total_cb_after == 40.0
        fetched = service.get_pool(second.pool.id)
        assert [m.ship_id for m in fetched.members] == ["A", "B", "C"]
        assert [p.id for p in service.list_pools(2024)] == [second.pool.id, first.pool.id]
        assert service.list_pools(2025) == []

    def test_unknown_pool(self, service):
        """Missing pools are reported."""
        with pytest.raises(NotFoundError, match="Pool nope not found"):
            service.get_pool("nope")


class TestLifecycle:
    """Startup, health and provenance toggles."""

    def test_sql_backed_startup_seeds(self, config):
        """A default service creates its schema and seeds routes."""
        svc = FuelEUService(dataclasses.replace(config, seed_on_startup=True))
        svc.startup()
        try:
            assert len(svc.list_routes()) == 5
            assert svc.health_check().status == "healthy"
        finally:
            svc.shutdown()

    def test_health_components(self, service):
        """Health reports repository and provenance state."""
        health = service.health_check()

        assert health.status == "healthy"
        assert health.components["repository"] == "InMemoryRepository"
        assert health.components["repository_status"] == "ok"

    def test_provenance_disabled(self, config, repository):
        """Without provenance results carry an empty hash."""
        svc = FuelEUService(dataclasses.replace(config, enable_provenance=False), repository)

        result = svc.compute_compliance_balance("S1", 2024, 88.0, 1.0)

        assert svc.provenance is None
        assert result.provenance_hash == ""
