"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures passed between services and callers: integrity
    verification results, correction requests, pagination pages, and the
    audit trail report.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O, no ORM.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class IntegrityCheck:
    """Names of the per-transaction integrity checks."""

    AMOUNT_VALIDATION = "amountValidation"
    DUPLICATE_CHECK = "duplicateCheck"
    AUDIT_CORRELATION = "auditCorrelation"
    ACCOUNT_REFERENCE = "accountReference"

    ALL = (AMOUNT_VALIDATION, DUPLICATE_CHECK, AUDIT_CORRELATION, ACCOUNT_REFERENCE)


@dataclass(frozen=True)
class IntegrityIssue:
    """One failed integrity check."""

    check: str
    description: str
    related_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "check": self.check,
            "description": self.description,
            "related_ids": list(self.related_ids),
        }


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of verifying one transaction.

    ``is_valid`` is True only when every check passed.
    """

    transaction_id: str
    issues: tuple[IntegrityIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def failed_checks(self) -> tuple[str, ...]:
        return tuple(issue.check for issue in self.issues)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "is_valid": self.is_valid,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True)
class CorrectionRequest:
    """
    Caller input for a balance correction.

    Amounts are accepted as text (``"৳5,000.00"``) or Decimal and are parsed
    by the correction service; nothing here is validated.
    """

    account_id: str
    current_balance: str | Decimal
    correct_balance: str | Decimal
    reason: str | None
    evidence: dict[str, Any] | None = None


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a newest-first listing."""

    items: tuple[T, ...]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self, render: Callable[[T], Any]) -> dict[str, Any]:
        return {
            "items": [render(item) for item in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "total_pages": self.total_pages,
            },
        }


@dataclass(frozen=True)
class AuditTrailSummary:
    transaction_count: int
    total_amount: Decimal
    completed_credit_total: Decimal
    completed_debit_total: Decimal
    discrepancy_count: int
    correction_count: int
    # Stored amounts that failed to parse and were left out of the totals
    unparseable_amount_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_count": self.transaction_count,
            "total_amount": str(self.total_amount),
            "completed_credit_total": str(self.completed_credit_total),
            "completed_debit_total": str(self.completed_debit_total),
            "discrepancy_count": self.discrepancy_count,
            "correction_count": self.correction_count,
            "unparseable_amount_count": self.unparseable_amount_count,
        }


@dataclass(frozen=True)
class AuditTrailReport:
    """
    Everything recorded in ``[period_start, period_end)``.

    Rows are plain dicts with amounts as canonical 2-place strings, ready
    for either output encoding.
    """

    period_start: datetime
    period_end: datetime
    transactions: tuple[dict[str, Any], ...]
    discrepancies: tuple[dict[str, Any], ...]
    corrections: tuple[dict[str, Any], ...]
    summary: AuditTrailSummary
    generated_at: datetime | None = None
    currency: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": {
                "start": self.period_start.isoformat(),
                "end": self.period_end.isoformat(),
            },
            "transactions": list(self.transactions),
            "discrepancies": list(self.discrepancies),
            "corrections": list(self.corrections),
            "summary": self.summary.to_dict(),
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "currency": self.currency,
        }
