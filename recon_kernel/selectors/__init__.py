"""Read-only query selectors."""

from recon_kernel.selectors.base import BaseSelector, validate_pagination
from recon_kernel.selectors.correction_selector import CorrectionSelector
from recon_kernel.selectors.health_selector import HealthSelector
from recon_kernel.selectors.ledger_selector import LedgerSelector
from recon_kernel.selectors.reconciliation_selector import ReconciliationSelector

__all__ = [
    "BaseSelector",
    "CorrectionSelector",
    "HealthSelector",
    "LedgerSelector",
    "ReconciliationSelector",
    "validate_pagination",
]
