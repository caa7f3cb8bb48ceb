"""Per-transaction integrity checks."""

from recon_engines.integrity.checks import TransactionIntegrityChecker
from recon_engines.integrity.types import IntegrityContext, TransactionFacts

__all__ = [
    "IntegrityContext",
    "TransactionFacts",
    "TransactionIntegrityChecker",
]
