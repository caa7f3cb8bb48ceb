"""
Integrity engine types -- frozen inputs for TransactionIntegrityChecker.

Populated by IntegrityService; the checker itself performs no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TransactionFacts:
    """The fields of one transaction the checks look at."""

    transaction_id: str
    account_id: str
    amount_text: str
    transaction_type: str
    status: str
    reference: str | None
    created_at: datetime

    @property
    def is_completed(self) -> bool:
        return self.status == "COMPLETED"


@dataclass(frozen=True)
class IntegrityContext:
    """
    One transaction plus the surrounding facts its checks need.

    ``neighbours`` are the other transactions on the same account with the
    same non-null reference, created within the duplicate window (the
    service pre-filters by account, reference and time; the checker compares
    amounts).
    """

    transaction: TransactionFacts
    neighbours: tuple[TransactionFacts, ...]
    has_creation_audit: bool
    account_exists: bool
    duplicate_window_seconds: int
