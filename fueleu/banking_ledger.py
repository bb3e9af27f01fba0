# -*- coding: utf-8 -*-
"""
Banking Ledger

Bank and Apply operations on a ship's compliance balance, recorded as an
append-only ledger of :class:`~fueleu.models.LedgerEntry` transactions.

Balance accounting:
    - Bank records a commitment against the stored balance; the stored
      balance itself is left unchanged.
    - Apply consumes net banked surplus and raises the stored balance by
      the applied amount.
    - Net banked balance  = sum(+BANK, -APPLY)
    - Adjusted balance    = stored + sum(-BANK, +APPLY), 0 when nothing
      is stored

Both operations need a stored balance for the ship-year.

Example:
    >>> ledger = BankingLedger(repository)
    >>> result = ledger.bank("S1", 2024, 1000.0)
    >>> result.remaining_cb
    0.0

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fueleu.config import FuelEUConfig, get_config
from fueleu.determinism import utcnow
from fueleu.exceptions import BusinessRuleViolation, NotFoundError
from fueleu.models import (
    ApplyResult,
    BankResult,
    ComplianceBalance,
    LedgerEntry,
    TransactionKind,
    require_positive,
    require_ship_id,
    require_year,
)
from fueleu.repository import ComplianceRepository

logger = logging.getLogger(__name__)


class BankingLedger:
    """Validates and records banking transactions.

    Attributes:
        repository: Store for balances and ledger entries.
    """

    def __init__(
        self,
        repository: ComplianceRepository,
        config: Optional[FuelEUConfig] = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            repository: ComplianceRepository implementation.
            config: Optional FuelEUConfig. Uses the global config if None.
        """
        cfg = config if config is not None else get_config()
        self.repository = repository
        self._min_year: int = cfg.min_year
        self._max_year: int = cfg.max_year

    def _validate(self, ship_id: str, year: int, amount: float) -> float:
        require_ship_id(ship_id)
        require_year(year, self._min_year, self._max_year)
        return require_positive(amount)

    def _require_balance(self, ship_id: str, year: int) -> ComplianceBalance:
        balance = self.repository.find_compliance_balance(ship_id, year)
        if balance is None:
            raise NotFoundError(
                f"Compliance balance not found for ship {ship_id} "
                f"in year {year}",
                resource="compliance_balance",
                key={"ship_id": ship_id, "year": year},
            )
        return balance

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def bank(self, ship_id: str, year: int, amount: float) -> BankResult:
        """Bank part or all of a positive stored balance.

        Args:
            ship_id: Ship identifier.
            year: Reporting year.
            amount: Amount to bank in gCO2e, > 0.

        Returns:
            BankResult with the new entry, the stored balance before and
            the balance remaining after this commitment.

        Raises:
            InvalidInputError: If an argument is invalid.
            NotFoundError: If no balance is stored for the ship-year.
            BusinessRuleViolation: If the stored balance is not positive
                or is smaller than ``amount``.
        """
        amount = self._validate(ship_id, year, amount)
        available_cb = self._require_balance(ship_id, year).cb_value

        if available_cb <= 0:
            raise BusinessRuleViolation(
                "Cannot bank negative or zero compliance balance",
                rule="bank_non_positive_balance",
                values={"ship_id": ship_id, "year": year,
                        "available_cb": available_cb},
            )
        if amount > available_cb:
            raise BusinessRuleViolation(
                f"Amount {amount} exceeds available compliance balance "
                f"{available_cb}",
                rule="amount_exceeds_available_cb",
                values={"amount": amount, "available_cb": available_cb},
            )

        entry = self.repository.save_ledger_entry(
            LedgerEntry(
                ship_id=ship_id,
                year=year,
                amount=amount,
                kind=TransactionKind.BANK,
            )
        )
        logger.info(
            "Banked %.2f for %s/%d (available=%.2f)",
            amount, ship_id, year, available_cb,
        )
        return BankResult(
            entry=entry,
            available_cb=available_cb,
            remaining_cb=available_cb - amount,
        )

    def apply(self, ship_id: str, year: int, amount: float) -> ApplyResult:
        """Apply banked surplus to the stored balance.

        Args:
            ship_id: Ship identifier.
            year: Reporting year.
            amount: Amount to apply in gCO2e, > 0.

        Returns:
            ApplyResult with the new entry, banked balance before and
            after, and the stored balance before and after.

        Raises:
            InvalidInputError: If an argument is invalid.
            BusinessRuleViolation: If ``amount`` exceeds the net banked
                balance.
            NotFoundError: If no balance is stored for the ship-year.
        """
        amount = self._validate(ship_id, year, amount)

        available_banked = self.get_available_balance(ship_id, year)
        if amount > available_banked:
            raise BusinessRuleViolation(
                f"Amount {amount} exceeds available banked balance "
                f"{available_banked}",
                rule="amount_exceeds_banked_balance",
                values={"amount": amount,
                        "available_banked": available_banked},
            )

        cb_before = self._require_balance(ship_id, year).cb_value

        cb_after = cb_before + amount
        entry, updated = self.repository.apply_ledger_entry(
            LedgerEntry(
                ship_id=ship_id,
                year=year,
                amount=amount,
                kind=TransactionKind.APPLY,
            ),
            ComplianceBalance(
                ship_id=ship_id,
                year=year,
                cb_value=cb_after,
                computed_at=utcnow(),
            ),
        )
        logger.info(
            "Applied %.2f to %s/%d: cb %.2f -> %.2f",
            amount, ship_id, year, cb_before, cb_after,
        )
        return ApplyResult(
            entry=entry,
            available_banked=available_banked,
            remaining_banked=available_banked - amount,
            cb_before=cb_before,
            cb_after=cb_after,
            updated_balance=updated,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_available_balance(self, ship_id: str, year: int) -> float:
        """Net banked balance: sum of +BANK and -APPLY amounts."""
        return self.repository.get_net_ledger_balance(ship_id, year)

    def get_adjusted_cb(self, ship_id: str, year: int) -> float:
        """Stored balance net of banked and applied amounts, 0 if absent."""
        return self.repository.get_adjusted_compliance_balance(ship_id, year)

    def get_records(self, ship_id: str, year: int) -> List[LedgerEntry]:
        """Ledger entries for the ship-year, newest first."""
        require_ship_id(ship_id)
        require_year(year, self._min_year, self._max_year)
        return self.repository.find_ledger_entries(ship_id, year)


__all__ = ["BankingLedger"]
