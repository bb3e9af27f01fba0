# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import dataclasses
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from fueleu.app import create_app
from fueleu.banking_ledger import BankingLedger
from fueleu.config import FuelEUConfig, reset_config, set_config
from fueleu.db.base import create_db_engine, init_db
from fueleu.db.repository import SqlAlchemyRepository
from fueleu.determinism import DeterministicClock
from fueleu.models import ComplianceBalance
from fueleu.pool_allocator import PoolAllocator
from fueleu.repository import InMemoryRepository
from fueleu.seed import seed_routes
from fueleu.setup import FuelEUService, set_service

FROZEN_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def frozen_clock():
    """Freeze the deterministic clock for every test."""
    with DeterministicClock.frozen(FROZEN_TIME):
        yield FROZEN_TIME


@pytest.fixture(autouse=True)
def config():
    """Install an in-memory, non-seeding configuration."""
    cfg = FuelEUConfig(database_url="sqlite://", seed_on_startup=False)
    set_config(cfg)
    yield cfg
    set_service(None)
    reset_config()


@pytest.fixture
def repository():
    """Empty in-memory repository."""
    return InMemoryRepository()


@pytest.fixture
def seeded_repository(repository):
    """In-memory repository holding the reference routes."""
    seed_routes(repository)
    return repository


@pytest.fixture
def sql_engine():
    """In-memory SQLite engine with the schema created."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_repository(sql_engine):
    """SqlAlchemyRepository over an in-memory SQLite database."""
    return SqlAlchemyRepository(sql_engine)


@pytest.fixture
def ledger(repository, config):
    """BankingLedger over the in-memory repository."""
    return BankingLedger(repository, config)


@pytest.fixture
def allocator(repository, config):
    """PoolAllocator over the in-memory repository."""
    return PoolAllocator(repository, config)


@pytest.fixture
def store_balance():
    """Store a compliance balance directly in a repository."""

    def _store(repo, ship_id, year, cb_value):
        return repo.save_compliance_balance(
            ComplianceBalance(ship_id=ship_id, year=year, cb_value=cb_value)
        )

    return _store


@pytest.fixture
def service(repository, config):
    """FuelEUService over the in-memory repository."""
    return FuelEUService(config=config, repository=repository)


@pytest.fixture
def client(config):
    """HTTP client for an app seeded with the reference routes."""
    app = create_app(
        dataclasses.replace(config, seed_on_startup=True),
        repository=InMemoryRepository(),
    )
    return TestClient(app)
