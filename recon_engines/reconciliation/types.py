"""
Reconciliation engine types -- frozen inputs and outputs of BalanceChecker.

All inputs are populated by ReconciliationService from the ledger, the
balance store and the correction history; the engine never touches I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from recon_kernel.exceptions import ConfigurationError


@dataclass(frozen=True)
class LedgerMovement:
    """One COMPLETED transaction as seen by the engine (amount still raw text)."""

    transaction_id: str
    amount_text: str
    is_credit: bool


@dataclass(frozen=True)
class AccountSnapshot:
    """
    Everything needed to reconcile one account for one date.

    ``checkpoint_balance`` is the last trusted balance before the window:
    the corrected balance of the latest correction before the day ends,
    or the account's opening balance.  ``movements`` are the COMPLETED
    transactions between the checkpoint and the end of the day.
    ``actual_balance`` is the stored balance as of the end of the day.
    """

    account_id: str
    checkpoint_balance: Decimal
    movements: tuple[LedgerMovement, ...]
    actual_balance: Decimal


@dataclass(frozen=True)
class SeverityBands:
    """
    Magnitude bands for |difference|.

    LOW below ``low_below``, MEDIUM below ``medium_below``, HIGH otherwise.
    """

    low_below: Decimal
    medium_below: Decimal

    def __post_init__(self) -> None:
        if self.low_below <= 0:
            raise ConfigurationError("severity.low_below", "must be positive")
        if self.low_below >= self.medium_below:
            raise ConfigurationError(
                "severity.medium_below", "must be greater than severity.low_below"
            )

    def classify(self, difference: Decimal) -> str:
        magnitude = abs(difference)
        if magnitude < self.low_below:
            return "LOW"
        if magnitude < self.medium_below:
            return "MEDIUM"
        return "HIGH"


@dataclass(frozen=True)
class BalanceComparison:
    """Expected vs actual for one account.  ``severity`` is None on a match."""

    account_id: str
    expected: Decimal
    actual: Decimal
    difference: Decimal
    severity: str | None
    # Movements left out because their stored amount does not parse
    skipped_transaction_ids: tuple[str, ...] = ()

    @property
    def is_match(self) -> bool:
        return self.severity is None


@dataclass(frozen=True)
class ReconciliationOutcome:
    """Comparisons for every candidate account, ordered by account id."""

    comparisons: tuple[BalanceComparison, ...]

    @property
    def discrepancies(self) -> tuple[BalanceComparison, ...]:
        return tuple(c for c in self.comparisons if not c.is_match)

    @property
    def status(self) -> str:
        return "DISCREPANCY_FOUND" if self.discrepancies else "RECONCILED"

    @property
    def skipped_transaction_ids(self) -> tuple[str, ...]:
        return tuple(t for c in self.comparisons for t in c.skipped_transaction_ids)
