"""
recon_services.audit_report_service -- Audit trail report for a period.

Responsibility:
    Collects every transaction, discrepancy alert and balance correction
    recorded in ``[start, end)``, derives summary counters, and renders the
    report as a structured dict (``json``) or flat CSV text (``csv``).

Architecture position:
    Services -- read-only composition over kernel selectors.

Invariants enforced:
    - Date bounds and the output format are validated before any query.
    - Amounts in the report are canonical 2-place strings; display
      formatting is never applied.
    - Stored amounts are read with the configured currency's markers, and
      the report names that currency's code.
    - Stored transaction amounts that do not parse are reported with
      ``amount`` = None and counted, never guessed.

Failure modes:
    - InvalidDateRangeError: a bound does not parse, or start >= end.
    - UnsupportedFormatError: format other than json/csv.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from recon_config.bridges import build_currency, business_zone
from recon_config.schema import ReconciliationConfig
from recon_kernel.domain.clock import Clock
from recon_kernel.domain.currency import parse_amount, sum_amounts
from recon_kernel.domain.dtos import AuditTrailReport, AuditTrailSummary
from recon_kernel.exceptions import (
    InvalidAmountFormatError,
    InvalidDateRangeError,
    UnsupportedFormatError,
)
from recon_kernel.logging_config import get_logger
from recon_kernel.models.balance_correction import BalanceCorrection
from recon_kernel.models.reconciliation import DiscrepancyAlert
from recon_kernel.models.transaction import Transaction
from recon_kernel.selectors.correction_selector import CorrectionSelector
from recon_kernel.selectors.ledger_selector import LedgerSelector
from recon_kernel.selectors.reconciliation_selector import ReconciliationSelector
from recon_kernel.services.base import BaseService

logger = get_logger("services.audit_report")

SUPPORTED_FORMATS = ("json", "csv")

CSV_COLUMNS = (
    "record_type",
    "id",
    "account_id",
    "created_at",
    "amount",
    "transaction_type",
    "status",
    "reference",
    "reconciliation_id",
    "expected",
    "actual",
    "difference",
    "severity",
    "adjustment_reference",
    "original_balance",
    "corrected_balance",
    "correction_type",
    "reason",
    "actor_id",
)


def _text(value: Any) -> str | None:
    return None if value is None else str(getattr(value, "value", value))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class AuditReportService(BaseService):
    """Builds audit trail reports."""

    def __init__(
        self,
        session: Session,
        config: ReconciliationConfig,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._zone = business_zone(config)
        self._currency = build_currency(config)
        self._ledger = LedgerSelector(session)
        self._records = ReconciliationSelector(session)
        self._corrections = CorrectionSelector(session)

    # =========================================================================
    # Bounds
    # =========================================================================

    def parse_bound(self, value: Any, start: Any, end: Any) -> datetime:
        """
        Resolve a date, datetime or ISO string to an aware UTC datetime.

        Dates mean midnight in the business timezone; naive datetimes are
        read in the business timezone too.
        """
        if isinstance(value, str):
            text = value.strip()
            try:
                if len(text) == 10:
                    value = date.fromisoformat(text)
                else:
                    value = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError as exc:
                raise InvalidDateRangeError(start, end, f"cannot parse {value!r}") from exc

        if isinstance(value, datetime):
            moment = value if value.tzinfo else value.replace(tzinfo=self._zone)
        elif isinstance(value, date):
            moment = datetime.combine(value, time.min, tzinfo=self._zone)
        else:
            raise InvalidDateRangeError(start, end, f"cannot parse {value!r}")
        return moment.astimezone(timezone.utc)

    def resolve_period(self, start: Any, end: Any) -> tuple[datetime, datetime]:
        period_start = self.parse_bound(start, start, end)
        period_end = self.parse_bound(end, start, end)
        if period_start >= period_end:
            raise InvalidDateRangeError(start, end, "start must be before end")
        return period_start, period_end

    # =========================================================================
    # Report
    # =========================================================================

    def generate(self, start: Any, end: Any) -> AuditTrailReport:
        period_start, period_end = self.resolve_period(start, end)

        transactions = self._ledger.transactions_between(period_start, period_end)
        alerts = self._records.alerts_between(period_start, period_end)
        corrections = self._corrections.between(period_start, period_end)

        transaction_rows = []
        parsed: list[Decimal] = []
        credits: list[Decimal] = []
        debits: list[Decimal] = []
        unparseable = 0
        for tx in transactions:
            try:
                amount = parse_amount(tx.amount, self._currency)
            except InvalidAmountFormatError:
                amount = None
                unparseable += 1
            else:
                parsed.append(amount)
                if tx.is_completed:
                    (credits if tx.is_credit else debits).append(amount)
            transaction_rows.append(self._transaction_row(tx, amount))

        summary = AuditTrailSummary(
            transaction_count=len(transactions),
            total_amount=sum_amounts(parsed),
            completed_credit_total=sum_amounts(credits),
            completed_debit_total=sum_amounts(debits),
            discrepancy_count=len(alerts),
            correction_count=len(corrections),
            unparseable_amount_count=unparseable,
        )

        logger.info(
            "audit_trail_generated",
            extra={
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "transaction_count": summary.transaction_count,
                "discrepancy_count": summary.discrepancy_count,
                "correction_count": summary.correction_count,
            },
        )
        if unparseable:
            logger.warning(
                "audit_trail_unparseable_amounts",
                extra={"unparseable_amount_count": unparseable},
            )

        return AuditTrailReport(
            period_start=period_start,
            period_end=period_end,
            transactions=tuple(transaction_rows),
            discrepancies=tuple(self._alert_row(alert) for alert in alerts),
            corrections=tuple(self._correction_row(c) for c in corrections),
            summary=summary,
            generated_at=self.clock.now(),
            currency=self._currency.code,
        )

    @staticmethod
    def _transaction_row(tx: Transaction, amount: Decimal | None) -> dict[str, Any]:
        return {
            "id": str(tx.id),
            "account_id": tx.account_id,
            "amount": str(amount) if amount is not None else None,
            "amount_text": tx.amount,
            "transaction_type": _text(tx.transaction_type),
            "status": _text(tx.status),
            "reference": tx.reference,
            "created_at": _iso(tx.created_at),
        }

    @staticmethod
    def _alert_row(alert: DiscrepancyAlert) -> dict[str, Any]:
        return {
            "id": str(alert.id),
            "reconciliation_id": str(alert.reconciliation_id),
            "account_id": alert.account_id,
            "expected": str(alert.expected_amount),
            "actual": str(alert.actual_amount),
            "difference": str(alert.difference),
            "severity": _text(alert.severity),
            "status": _text(alert.status),
            "resolution_notes": alert.resolution_notes,
            "created_at": _iso(alert.created_at),
            "resolved_at": _iso(alert.resolved_at),
        }

    @staticmethod
    def _correction_row(correction: BalanceCorrection) -> dict[str, Any]:
        return {
            "id": str(correction.id),
            "adjustment_reference": correction.adjustment_reference,
            "account_id": correction.account_id,
            "original_balance": str(correction.original_balance),
            "corrected_balance": str(correction.corrected_balance),
            "difference": str(correction.difference),
            "correction_type": _text(correction.correction_type),
            "reason": correction.reason,
            "actor_id": correction.actor_id,
            "created_at": _iso(correction.created_at),
        }


# =============================================================================
# Encodings
# =============================================================================


def check_format(output_format: str) -> str:
    normalized = (output_format or "").strip().lower()
    if normalized not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(output_format, SUPPORTED_FORMATS)
    return normalized


def render_report(report: AuditTrailReport, output_format: str = "json") -> dict[str, Any] | str:
    """Structured dict for ``json``; CSV text for ``csv``."""
    if check_format(output_format) == "json":
        return report.to_dict()
    return render_csv(report)


def render_csv(report: AuditTrailReport) -> str:
    """
    One row per transaction, discrepancy and correction.

    ``record_type`` tells the rows apart; columns that do not apply to a
    row are left empty.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=CSV_COLUMNS,
        restval="",
        extrasaction="ignore",
        lineterminator="\n",
    )
    writer.writeheader()
    for row in report.transactions:
        writer.writerow({"record_type": "transaction", **_blank_none(row)})
    for row in report.discrepancies:
        writer.writerow({"record_type": "discrepancy", **_blank_none(row)})
    for row in report.corrections:
        writer.writerow({"record_type": "correction", **_blank_none(row)})
    return buffer.getvalue()


def _blank_none(row: dict[str, Any]) -> dict[str, Any]:
    return {key: ("" if value is None else value) for key, value in row.items()}
