# -*- coding: utf-8 -*-
"""
FuelEU Maritime Compliance Service

Compliance balance calculation, baseline route comparison, surplus
banking and compliance pooling under the FuelEU Maritime regulation.

Core components:
    - ComplianceCalculator: CB = (target - actual) * fuel * 41000 MJ/t
    - ComparisonCalculator: route intensity against the baseline route
    - BankingLedger: Bank and Apply transactions on the ledger
    - PoolAllocator: greedy surplus-to-deficit pool allocation

Example:
    >>> from fueleu import ComplianceCalculator
    >>> round(ComplianceCalculator().compute("S1", 2024, 88.0, 100.0).cb_value)
    5480880

Author: FuelEU Platform Team
Status: Production Ready
"""

from fueleu.banking_ledger import BankingLedger
from fueleu.comparison_calculator import ComparisonCalculator
from fueleu.compliance_calculator import ComplianceCalculator
from fueleu.config import FuelEUConfig, get_config, reset_config, set_config
from fueleu.exceptions import (
    BusinessRuleViolation,
    ErrorKind,
    FuelEUException,
    InvalidInputError,
    NotFoundError,
    UnavailableError,
)
from fueleu.models import (
    VERSION,
    ComplianceBalance,
    ComplianceStatus,
    LedgerEntry,
    Pool,
    PoolMember,
    Route,
    TransactionKind,
)
from fueleu.pool_allocator import PoolAllocator
from fueleu.repository import ComplianceRepository, InMemoryRepository

__version__ = VERSION

__all__ = [
    "__version__",
    "BankingLedger",
    "ComparisonCalculator",
    "ComplianceCalculator",
    "PoolAllocator",
    "FuelEUConfig",
    "get_config",
    "set_config",
    "reset_config",
    "ErrorKind",
    "FuelEUException",
    "InvalidInputError",
    "NotFoundError",
    "BusinessRuleViolation",
    "UnavailableError",
    "ComplianceBalance",
    "ComplianceStatus",
    "LedgerEntry",
    "Pool",
    "PoolMember",
    "Route",
    "TransactionKind",
    "ComplianceRepository",
    "InMemoryRepository",
]
