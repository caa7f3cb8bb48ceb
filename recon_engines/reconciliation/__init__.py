"""Daily balance comparison engine."""

from recon_engines.reconciliation.balance_checker import BalanceChecker, net_movement
from recon_engines.reconciliation.types import (
    AccountSnapshot,
    BalanceComparison,
    LedgerMovement,
    ReconciliationOutcome,
    SeverityBands,
)

__all__ = [
    "AccountSnapshot",
    "BalanceChecker",
    "BalanceComparison",
    "LedgerMovement",
    "ReconciliationOutcome",
    "SeverityBands",
    "net_movement",
]
