# -*- coding: utf-8 -*-
"""Tests for the FuelEU data models and pool invariants."""

import pytest
from pydantic import ValidationError

from fueleu.exceptions import BusinessRuleViolation, InvalidInputError
from fueleu.models import (
    ComplianceBalance,
    ComplianceStatus,
    LedgerEntry,
    Pool,
    PoolMember,
    Route,
    TransactionKind,
    display_status,
)


class TestComplianceBalance:
    """Balance status helpers."""

    @pytest.mark.parametrize(
        "value,status,display",
        [
            (10.0, ComplianceStatus.SURPLUS, ComplianceStatus.SURPLUS),
            (0.0, ComplianceStatus.SURPLUS, ComplianceStatus.NEUTRAL),
            (-0.5, ComplianceStatus.DEFICIT, ComplianceStatus.DEFICIT),
        ],
    )
    def test_status(self, value, status, display):
        """Regulatory status treats zero as surplus; display shows NEUTRAL."""
        balance = ComplianceBalance(ship_id="S1", year=2024, cb_value=value)

        assert balance.get_status() == status
        assert balance.display_status() == display
        assert display_status(value) == display

    def test_key_validated(self):
        """Ship id and year are validated on construction."""
        with pytest.raises(InvalidInputError):
            ComplianceBalance(ship_id="", year=2024, cb_value=1.0)
        with pytest.raises(InvalidInputError):
            ComplianceBalance(ship_id="S1", year=3000, cb_value=1.0)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_balance_rejected(self, value):
        """A balance must be a finite number."""
        with pytest.raises(InvalidInputError) as exc_info:
            ComplianceBalance(ship_id="S1", year=2024, cb_value=value)
        assert exc_info.value.field == "cb_value"

    def test_frozen(self):
        """Balances are immutable."""
        balance = ComplianceBalance(ship_id="S1", year=2024, cb_value=1.0)
        with pytest.raises(ValidationError):
            balance.cb_value = 2.0


class TestLedgerEntry:
    """Ledger entry validation and signs."""

    def test_signed_amount(self):
        """BANK counts positive, APPLY negative."""
        bank = LedgerEntry(ship_id="S1", year=2024, amount=5.0, kind=TransactionKind.BANK)
        apply = LedgerEntry(ship_id="S1", year=2024, amount=5.0, kind=TransactionKind.APPLY)

        assert bank.signed_amount == 5.0
        assert apply.signed_amount == -5.0
        assert bank.id != apply.id

    def test_amount_must_be_positive(self):
        """Zero amounts are rejected."""
        with pytest.raises(InvalidInputError, match="Amount must be positive"):
            LedgerEntry(ship_id="S1", year=2024, amount=0.0, kind=TransactionKind.BANK)

    @pytest.mark.parametrize("amount", [float("nan"), float("inf")])
    def test_amount_must_be_finite(self, amount):
        """NaN and infinite amounts are rejected."""
        with pytest.raises(InvalidInputError, match="finite"):
            LedgerEntry(ship_id="S1", year=2024, amount=amount, kind=TransactionKind.BANK)


class TestRoute:
    """Route field constraints."""

    def test_defaults(self):
        """Optional fields default to zero and not baseline."""
        route = Route(route_id="R1", year=2024, ghg_intensity=90.0)

        assert route.fuel_consumption == 0.0
        assert route.is_baseline is False

    def test_negative_intensity_rejected(self):
        """Intensity cannot be negative."""
        with pytest.raises(ValueError):
            Route(route_id="R1", year=2024, ghg_intensity=-1.0)

    def test_nan_intensity_rejected(self):
        """Intensity must be a finite number."""
        with pytest.raises(ValueError):
            Route(route_id="R1", year=2024, ghg_intensity=float("nan"))


class TestPoolInvariants:
    """Invariants checked when a Pool is built."""

    def test_valid_pool(self):
        """Totals are computed from members."""
        pool = Pool(year=2024, members=[
            PoolMember(ship_id="A", cb_before=150.0, cb_after=40.0),
            PoolMember(ship_id="B", cb_before=-30.0, cb_after=0.0),
            PoolMember(ship_id="C", cb_before=-80.0, cb_after=0.0),
        ])

        assert pool.total_cb_before == 40.0
        assert pool.total_cb_after == 40.0
        assert pool.member_count == 3

    def test_empty_pool(self):
        """A pool needs at least one member."""
        with pytest.raises(BusinessRuleViolation) as exc_info:
            Pool(year=2024, members=[])
        assert exc_info.value.rule == "pool_min_members"

    def test_negative_total(self):
        """The total after allocation cannot be negative."""
        with pytest.raises(BusinessRuleViolation) as exc_info:
            Pool(year=2024, members=[
                PoolMember(ship_id="A", cb_before=10.0, cb_after=0.0),
                PoolMember(ship_id="B", cb_before=-30.0, cb_after=-20.0),
            ])
        assert exc_info.value.rule == "pool_total_non_negative"

    def test_tiny_negative_total_tolerated(self):
        """Float noise below the tolerance is accepted."""
        pool = Pool(year=2024, members=[
            PoolMember(ship_id="A", cb_before=-1e-9, cb_after=-1e-9),
            PoolMember(ship_id="B", cb_before=0.0, cb_after=0.0),
        ])
        assert pool.member_count == 2

    def test_deficit_worse(self):
        """A deficit ship may not end below where it started."""
        with pytest.raises(BusinessRuleViolation, match="Deficit ship B") as exc_info:
            Pool(year=2024, members=[
                PoolMember(ship_id="A", cb_before=100.0, cb_after=100.0),
                PoolMember(ship_id="B", cb_before=-30.0, cb_after=-40.0),
            ])
        assert exc_info.value.rule == "deficit_not_worse"

    def test_surplus_negative(self):
        """A surplus ship may not end negative."""
        with pytest.raises(BusinessRuleViolation, match="Surplus ship A") as exc_info:
            Pool(year=2024, members=[
                PoolMember(ship_id="A", cb_before=100.0, cb_after=-10.0),
                PoolMember(ship_id="B", cb_before=-30.0, cb_after=0.0),
                PoolMember(ship_id="C", cb_before=0.0, cb_after=50.0),
            ])
        assert exc_info.value.rule == "surplus_not_negative"

    @pytest.mark.parametrize("ship_id", ["", "  "])
    def test_blank_member_ship_id(self, ship_id):
        """Every member needs a ship id."""
        with pytest.raises(BusinessRuleViolation) as exc_info:
            Pool(year=2024, members=[
                PoolMember(ship_id=ship_id, cb_before=10.0, cb_after=10.0),
            ])
        assert exc_info.value.rule == "pool_member_ship_id"

    @pytest.mark.parametrize(
        "cb_before,cb_after",
        [(float("nan"), float("nan")), (10.0, float("nan")), (float("inf"), 10.0)],
    )
    def test_non_finite_member_balance(self, cb_before, cb_after):
        """Member balances must be finite numbers."""
        with pytest.raises(BusinessRuleViolation) as exc_info:
            Pool(year=2024, members=[
                PoolMember(ship_id="A", cb_before=cb_before, cb_after=cb_after),
            ])
        assert exc_info.value.rule == "pool_member_finite_balance"
