# -*- coding: utf-8 -*-
"""
FuelEU Maritime Data Models

Pydantic v2 data models for the FuelEU compliance service covering ship
compliance balances, the banking ledger, voyage routes, compliance pools
and the result envelopes returned by the calculators.

Enumerations (3):
    - ComplianceStatus, TransactionKind, EntityType

Core Models (5):
    - ComplianceBalance, LedgerEntry, Route, PoolMember, Pool

Result Models (6):
    - RouteRef, ComplianceResult, ComparisonResult, BankResult,
      ApplyResult, PoolResult

Pool invariants are enforced when a :class:`Pool` is constructed; a
violation raises :class:`~fueleu.exceptions.BusinessRuleViolation`
naming the member and rule involved.

Example:
    >>> from fueleu.models import PoolMember, Pool
    >>> pool = Pool(year=2024, members=[
    ...     PoolMember(ship_id="A", cb_before=150.0, cb_after=40.0),
    ...     PoolMember(ship_id="B", cb_before=-30.0, cb_after=0.0),
    ...     PoolMember(ship_id="C", cb_before=-80.0, cb_after=0.0),
    ... ])
    >>> pool.total_cb_after
    40.0

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fueleu.config import MAX_YEAR, MIN_YEAR
from fueleu.determinism import utcnow
from fueleu.exceptions import BusinessRuleViolation, InvalidInputError


def _new_uuid() -> str:
    """Generate a new UUID4 string."""
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Service version string.
VERSION: str = "1.0.0"

#: Absolute tolerance (gCO2e) for pool post-condition checks on float sums.
BALANCE_TOLERANCE: float = 1e-6


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def require_ship_id(ship_id: Any, field: str = "ship_id") -> str:
    """Return the ship id or raise InvalidInputError if blank."""
    if not isinstance(ship_id, str) or not ship_id.strip():
        raise InvalidInputError(
            "Ship ID is required", field=field, value=ship_id,
        )
    return ship_id


def require_year(
    year: Any,
    min_year: int = MIN_YEAR,
    max_year: int = MAX_YEAR,
) -> int:
    """Return the year or raise InvalidInputError if out of range."""
    if (
        isinstance(year, bool)
        or not isinstance(year, int)
        or not (min_year <= year <= max_year)
    ):
        raise InvalidInputError(
            f"Year must be between {min_year} and {max_year}",
            field="year",
            value=year,
        )
    return year


def require_positive(amount: Any, field: str = "amount") -> float:
    """Return the amount as float or raise InvalidInputError if <= 0."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidInputError(
            "Amount must be a number", field=field, value=amount,
        )
    if not math.isfinite(amount):
        raise InvalidInputError(
            "Amount must be a finite number", field=field, value=amount,
        )
    if not amount > 0:
        raise InvalidInputError(
            "Amount must be positive", field=field, value=amount,
        )
    return float(amount)


def require_non_negative(value: Any, field: str) -> float:
    """Return the value as float or raise InvalidInputError if < 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(
            f"{field} must be a number", field=field, value=value,
        )
    if not math.isfinite(value):
        raise InvalidInputError(
            f"{field} must be a finite number", field=field, value=value,
        )
    if value < 0:
        raise InvalidInputError(
            f"{field} must be non-negative", field=field, value=value,
        )
    return float(value)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ComplianceStatus(str, Enum):
    """Compliance position of a balance.

    SURPLUS and DEFICIT are the regulatory status (zero is SURPLUS).
    NEUTRAL is only reported by :meth:`ComplianceBalance.display_status`
    for an exactly-zero balance.
    """

    SURPLUS = "SURPLUS"
    DEFICIT = "DEFICIT"
    NEUTRAL = "NEUTRAL"


class TransactionKind(str, Enum):
    """Banking ledger transaction kind."""

    BANK = "BANK"
    APPLY = "APPLY"


class EntityType(str, Enum):
    """Provenance entity types recorded by the service."""

    COMPLIANCE_BALANCE = "compliance_balance"
    LEDGER_ENTRY = "ledger_entry"
    POOL = "pool"
    ROUTE = "route"
    COMPARISON = "comparison"


def display_status(value: float) -> ComplianceStatus:
    """Three-way status used by API responses (zero is NEUTRAL)."""
    if value > 0:
        return ComplianceStatus.SURPLUS
    if value < 0:
        return ComplianceStatus.DEFICIT
    return ComplianceStatus.NEUTRAL


# ---------------------------------------------------------------------------
# Core models
# ---------------------------------------------------------------------------


class ComplianceBalance(BaseModel):
    """Compliance balance of one ship for one reporting year.

    One logical balance exists per ``(ship_id, year)``; stores upsert on
    that key. Positive or zero is surplus, negative is deficit.

    Attributes:
        ship_id: Ship identifier.
        year: Reporting year.
        cb_value: Signed balance in gCO2e.
        computed_at: UTC timestamp of the last computation or update.
    """

    model_config = ConfigDict(frozen=True)

    ship_id: str = Field(..., description="Ship identifier")
    year: int = Field(..., description="Reporting year")
    cb_value: float = Field(..., description="Signed balance in gCO2e")
    computed_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_key(self) -> ComplianceBalance:
        require_ship_id(self.ship_id)
        require_year(self.year)
        if not math.isfinite(self.cb_value):
            raise InvalidInputError(
                "Compliance balance must be a finite number",
                field="cb_value",
                value=self.cb_value,
            )
        return self

    def get_status(self) -> ComplianceStatus:
        """SURPLUS when ``cb_value >= 0``, otherwise DEFICIT."""
        if self.cb_value >= 0:
            return ComplianceStatus.SURPLUS
        return ComplianceStatus.DEFICIT

    def is_surplus(self) -> bool:
        """True only for a strictly positive balance."""
        return self.cb_value > 0

    def is_deficit(self) -> bool:
        """True only for a strictly negative balance."""
        return self.cb_value < 0

    def display_status(self) -> ComplianceStatus:
        """Three-way status for presentation."""
        return display_status(self.cb_value)


class LedgerEntry(BaseModel):
    """Append-only banking ledger transaction.

    Attributes:
        id: Entry identifier.
        ship_id: Ship identifier.
        year: Reporting year.
        amount: Strictly positive amount in gCO2e.
        kind: BANK or APPLY.
        created_at: UTC creation timestamp.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_uuid)
    ship_id: str
    year: int
    amount: float
    kind: TransactionKind
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_entry(self) -> LedgerEntry:
        require_ship_id(self.ship_id)
        require_year(self.year)
        require_positive(self.amount)
        return self

    @property
    def signed_amount(self) -> float:
        """+amount for BANK, -amount for APPLY."""
        if self.kind == TransactionKind.BANK:
            return self.amount
        return -self.amount


class Route(BaseModel):
    """Voyage route with fuel and intensity data.

    Attributes:
        route_id: Route identifier (also used as ship id for lookups).
        vessel_type: Vessel category (Container, Tanker, ...).
        fuel_type: Fuel used (HFO, LNG, MGO, ...).
        year: Reporting year.
        ghg_intensity: Actual GHG intensity in gCO2e/MJ.
        fuel_consumption: Fuel consumed in tonnes.
        distance: Distance sailed in km.
        total_emissions: Total emissions in tonnes CO2e.
        is_baseline: Whether this is the comparison baseline.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    route_id: str = Field(..., min_length=1)
    vessel_type: str = Field(default="")
    fuel_type: str = Field(default="")
    year: int = Field(..., ge=MIN_YEAR, le=MAX_YEAR)
    ghg_intensity: float = Field(..., ge=0)
    fuel_consumption: float = Field(default=0.0, ge=0)
    distance: float = Field(default=0.0, ge=0)
    total_emissions: float = Field(default=0.0, ge=0)
    is_baseline: bool = Field(default=False)


class PoolMember(BaseModel):
    """Balance of one ship before and after pool allocation."""

    model_config = ConfigDict(frozen=True)

    ship_id: str
    cb_before: float
    cb_after: float


def validate_pool_members(members: Sequence[PoolMember]) -> None:
    """Check the pool invariants.

    Raises:
        BusinessRuleViolation: On the first invariant that does not hold.
    """
    if len(members) < 1:
        raise BusinessRuleViolation(
            "Pool must have at least one member",
            rule="pool_min_members",
            values={"member_count": len(members)},
        )

    for member in members:
        if not isinstance(member.ship_id, str) or not member.ship_id.strip():
            raise BusinessRuleViolation(
                "Pool member ship ID is required",
                rule="pool_member_ship_id",
                values={"ship_id": member.ship_id},
            )
        if not (math.isfinite(member.cb_before) and math.isfinite(member.cb_after)):
            raise BusinessRuleViolation(
                f"Pool member {member.ship_id} has a non-finite balance",
                rule="pool_member_finite_balance",
                values={
                    "ship_id": member.ship_id,
                    "cb_before": member.cb_before,
                    "cb_after": member.cb_after,
                },
            )

    total_after = sum(m.cb_after for m in members)
    if total_after < -BALANCE_TOLERANCE:
        raise BusinessRuleViolation(
            "Pool total CB after allocation must be non-negative",
            rule="pool_total_non_negative",
            values={"total_cb_after": total_after},
        )

    for member in members:
        if member.cb_before < 0 and member.cb_after < member.cb_before:
            raise BusinessRuleViolation(
                f"Deficit ship {member.ship_id} cannot exit with worse balance",
                rule="deficit_not_worse",
                values={
                    "ship_id": member.ship_id,
                    "cb_before": member.cb_before,
                    "cb_after": member.cb_after,
                },
            )
        if member.cb_before > 0 and member.cb_after < 0:
            raise BusinessRuleViolation(
                f"Surplus ship {member.ship_id} cannot exit with negative balance",
                rule="surplus_not_negative",
                values={
                    "ship_id": member.ship_id,
                    "cb_before": member.cb_before,
                    "cb_after": member.cb_after,
                },
            )


class Pool(BaseModel):
    """Immutable compliance pool.

    Invariants are validated at construction:

    1. ``sum(cb_after) >= 0``
    2. deficit members never end worse than they started
    3. surplus members never end negative
    4. at least one member
    5. every member has a ship id and finite balances
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_uuid)
    year: int
    members: List[PoolMember]
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_invariants(self) -> Pool:
        require_year(self.year)
        validate_pool_members(self.members)
        return self

    @property
    def total_cb_before(self) -> float:
        """Sum of member balances before allocation."""
        return sum(m.cb_before for m in self.members)

    @property
    def total_cb_after(self) -> float:
        """Sum of member balances after allocation."""
        return sum(m.cb_after for m in self.members)

    @property
    def member_count(self) -> int:
        """Number of ships in the pool."""
        return len(self.members)


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class RouteRef(BaseModel):
    """Route identifier and intensity as reported in a comparison."""

    model_config = ConfigDict(frozen=True)

    route_id: str
    ghg_intensity: float


class ComplianceResult(BaseModel):
    """Compliance balance together with the quantities behind it."""

    model_config = ConfigDict(frozen=True)

    balance: ComplianceBalance
    energy_in_scope: float
    status: ComplianceStatus
    provenance_hash: str = Field(default="")


class ComparisonResult(BaseModel):
    """Intensity comparison of one route against the baseline."""

    model_config = ConfigDict(frozen=True)

    baseline: RouteRef
    comparison: RouteRef
    percent_diff: float
    compliant: bool
    provenance_hash: str = Field(default="")


class BankResult(BaseModel):
    """Outcome of banking surplus."""

    model_config = ConfigDict(frozen=True)

    entry: LedgerEntry
    available_cb: float
    remaining_cb: float
    provenance_hash: str = Field(default="")


class ApplyResult(BaseModel):
    """Outcome of applying banked surplus."""

    model_config = ConfigDict(frozen=True)

    entry: LedgerEntry
    available_banked: float
    remaining_banked: float
    cb_before: float
    cb_after: float
    updated_balance: ComplianceBalance
    provenance_hash: str = Field(default="")


class PoolResult(BaseModel):
    """Persisted pool with its before and after totals."""

    model_config = ConfigDict(frozen=True)

    pool: Pool
    total_cb_before: float
    total_cb_after: float
    provenance_hash: str = Field(default="")


class BankingRecords(BaseModel):
    """Ledger entries of a ship-year with the net banked balance."""

    model_config = ConfigDict(frozen=True)

    ship_id: str
    year: int
    records: List[LedgerEntry] = Field(default_factory=list)
    available_balance: float = Field(default=0.0)


class HealthResponse(BaseModel):
    """Service health check response."""

    model_config = ConfigDict(frozen=True)

    status: str = Field(default="healthy")
    service: str = Field(default="fueleu")
    version: str = Field(default=VERSION)
    timestamp: Optional[datetime] = Field(default=None)
    components: dict = Field(default_factory=dict)


__all__ = [
    "VERSION",
    "BALANCE_TOLERANCE",
    "require_ship_id",
    "require_year",
    "require_positive",
    "require_non_negative",
    "ComplianceStatus",
    "TransactionKind",
    "EntityType",
    "display_status",
    "ComplianceBalance",
    "LedgerEntry",
    "Route",
    "PoolMember",
    "validate_pool_members",
    "Pool",
    "RouteRef",
    "ComplianceResult",
    "ComparisonResult",
    "BankResult",
    "ApplyResult",
    "PoolResult",
    "BankingRecords",
    "HealthResponse",
]
