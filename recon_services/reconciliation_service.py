"""
recon_services.reconciliation_service -- Daily reconciliation pass.

Responsibility:
    Builds one AccountSnapshot per candidate account for a business date,
    runs the pure BalanceChecker over them, and appends the resulting
    ReconciliationRecord, its DiscrepancyAlerts and a RECONCILIATION_RUN
    audit entry.  Also owns discrepancy resolution.

Architecture position:
    Services -- imperative shell over ``recon_engines.reconciliation``.

Invariants enforced:
    - Read-then-append: transactions and balances are never mutated.
    - Every pass appends a new record; earlier records for the same date
      are kept.
    - Zero tolerance: an account matches only when expected == actual
      after 2-place rounding.
    - Each account's balance row is read under a share lock held for the
      pass, so a concurrent correction on it is either wholly before the
      pass or wholly after it.

Algorithm:
    The date is the half-open window [day_start, day_end) in the business
    timezone.  Candidates are accounts with any transaction in the window
    plus accounts with a non-zero stored balance.  For each account:

        checkpoint = the later of: the balance confirmed by the latest
                     RECONCILED pass for an earlier, already closed day
                     (as of that day's end), and the corrected balance of
                     the latest correction created before day_end; else
                     the account's opening balance
        expected   = checkpoint + net(COMPLETED movements after the
                     checkpoint and before day_end)
        actual     = stored balance with everything recorded at or after
                     day_end unwound (later COMPLETED movements and later
                     corrections), i.e. the balance as of the end of the day

    For today's date nothing lies after day_end, so ``actual`` is exactly
    the stored balance.

Failure modes:
    - DiscrepancyNotFoundError / DiscrepancyAlreadyResolvedError /
      ResolutionNotesRequiredError from ``resolve_discrepancy``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from recon_config.bridges import build_currency, build_severity_bands, business_zone
from recon_config.schema import ReconciliationConfig
from recon_engines.reconciliation import (
    AccountSnapshot,
    BalanceChecker,
    LedgerMovement,
    ReconciliationOutcome,
    net_movement,
)
from recon_kernel.domain.audit_payloads import ReconciliationRunPayload
from recon_kernel.domain.clock import Clock
from recon_kernel.domain.currency import ZERO, round_amount, sum_amounts
from recon_kernel.domain.dtos import Page
from recon_kernel.exceptions import (
    DiscrepancyAlreadyResolvedError,
    DiscrepancyNotFoundError,
    ResolutionNotesRequiredError,
)
from recon_kernel.logging_config import get_logger
from recon_kernel.models.account_balance import AccountBalance
from recon_kernel.models.reconciliation import (
    DiscrepancyAlert,
    DiscrepancyStatus,
    ReconciliationRecord,
)
from recon_kernel.models.transaction import Transaction
from recon_kernel.selectors.correction_selector import CorrectionSelector
from recon_kernel.selectors.ledger_selector import LedgerSelector
from recon_kernel.selectors.reconciliation_selector import ReconciliationSelector
from recon_kernel.services.auditor_service import AuditorService
from recon_kernel.services.base import BaseService
from recon_services.integrity_service import IntegrityService

logger = get_logger("services.reconciliation")


def _movements(transactions: list[Transaction]) -> tuple[LedgerMovement, ...]:
    return tuple(
        LedgerMovement(
            transaction_id=str(tx.id),
            amount_text=tx.amount,
            is_credit=tx.is_credit,
        )
        for tx in transactions
    )


class ReconciliationService(BaseService):
    """
    Runs reconciliation passes and resolves their alerts.

    Contract:
        ``reconcile`` flushes but never commits; the caller owns the
        transaction boundary.
    """

    def __init__(
        self,
        session: Session,
        config: ReconciliationConfig,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._config = config
        self._zone = business_zone(config)
        self._currency = build_currency(config)
        self._checker = BalanceChecker(build_severity_bands(config), self._currency)
        self._ledger = LedgerSelector(session)
        self._corrections = CorrectionSelector(session)
        self._records = ReconciliationSelector(session)
        self._auditor = AuditorService(session, self.clock)

    # =========================================================================
    # Window
    # =========================================================================

    def day_bounds(self, reconciliation_date: date) -> tuple[datetime, datetime]:
        """UTC bounds of ``reconciliation_date`` in the business timezone."""
        start = datetime.combine(reconciliation_date, time.min, tzinfo=self._zone)
        end = datetime.combine(reconciliation_date + timedelta(days=1), time.min, tzinfo=self._zone)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    def business_today(self) -> date:
        return self.clock.today(self._zone)

    # =========================================================================
    # Snapshots
    # =========================================================================

    def closed_day_checkpoint(self, target: date) -> tuple[datetime, dict[str, str]] | None:
        """
        End of the latest RECONCILED day before ``target`` and the balances
        it confirmed.

        Only a pass run after its day had ended qualifies; its actual
        balances are then exact as of that day's end.
        """
        record = self._records.latest_reconciled_before(target)
        if record is None:
            return None
        _, closed_at = self.day_bounds(record.reconciliation_date)
        if record.created_at < closed_at:
            return None
        return closed_at, record.actual_balances

    def build_snapshot(
        self,
        account_id: str,
        day_end: datetime,
        closed_day: tuple[datetime, dict[str, str]] | None = None,
    ) -> AccountSnapshot:
        balance = self._ledger.get_balance_for_share(account_id)

        correction = self._corrections.latest_before(account_id, day_end)
        closed_at, confirmed = closed_day or (None, {})
        if account_id in confirmed and (
            correction is None or correction.created_at < closed_at
        ):
            # Movements at exactly closed_at belong to the following day
            checkpoint_balance = Decimal(confirmed[account_id])
            day_movements = self._ledger.completed_transactions(
                account_id, after=closed_at, before=day_end, include_after=True,
            )
        elif correction is not None:
            checkpoint_balance = correction.corrected_balance
            day_movements = self._ledger.completed_transactions(
                account_id, after=correction.created_at, before=day_end,
            )
        else:
            checkpoint_balance = balance.opening_balance if balance is not None else ZERO
            day_movements = self._ledger.completed_transactions(account_id, before=day_end)

        return AccountSnapshot(
            account_id=account_id,
            checkpoint_balance=round_amount(checkpoint_balance),
            movements=_movements(day_movements),
            actual_balance=self._balance_at(account_id, balance, day_end),
        )

    def _balance_at(
        self,
        account_id: str,
        balance: AccountBalance | None,
        day_end: datetime,
    ) -> Decimal:
        """Stored balance with everything recorded from ``day_end`` on unwound."""
        if balance is None:
            return ZERO
        later = self._ledger.completed_transactions(
            account_id, after=day_end, include_after=True,
        )
        later_net, _ = net_movement(_movements(later), self._currency)
        later_corrections = sum_amounts(
            c.corrected_balance - c.live_balance_before
            for c in self._corrections.since(account_id, day_end)
        )
        return round_amount(balance.current_balance - later_net - later_corrections)

    def candidate_accounts(self, day_start: datetime, day_end: datetime) -> list[str]:
        accounts = self._ledger.accounts_with_transactions_between(day_start, day_end)
        accounts |= self._ledger.nonzero_balance_accounts()
        return sorted(accounts)

    # =========================================================================
    # Reconcile
    # =========================================================================

    def reconcile(
        self,
        reconciliation_date: date | None = None,
        run_by: str | None = None,
    ) -> ReconciliationRecord:
        """
        Run one pass for ``reconciliation_date`` (default: today in the
        business timezone) and append its record.

        Postconditions:
            - One new ReconciliationRecord, one OPEN DiscrepancyAlert per
              mismatched account, one RECONCILIATION_RUN audit entry.
        """
        target = reconciliation_date or self.business_today()
        day_start, day_end = self.day_bounds(target)
        accounts = self.candidate_accounts(day_start, day_end)

        logger.info(
            "reconciliation_started",
            extra={
                "reconciliation_date": target.isoformat(),
                "account_count": len(accounts),
            },
        )

        closed_day = self.closed_day_checkpoint(target)
        snapshots = tuple(
            self.build_snapshot(account_id, day_end, closed_day) for account_id in accounts
        )
        outcome = self._checker.compare(snapshots=snapshots)

        integrity_issue_count = None
        if self._config.reconciliation.verify_integrity:
            integrity_issue_count = self._verify_day(day_start, day_end)

        record = self._write_record(target, outcome, run_by)

        self._auditor.record(
            ReconciliationRunPayload(
                reconciliation_id=str(record.id),
                reconciliation_date=target.isoformat(),
                status=record.status,
                accounts_checked=len(outcome.comparisons),
                discrepancy_count=len(outcome.discrepancies),
                integrity_issue_count=integrity_issue_count,
            ),
            actor_id=run_by,
        )

        logger.info(
            "reconciliation_completed",
            extra={
                "reconciliation_id": str(record.id),
                "reconciliation_date": target.isoformat(),
                "status": record.status,
                "accounts_checked": len(outcome.comparisons),
                "discrepancy_count": len(outcome.discrepancies),
                "skipped_transaction_count": len(outcome.skipped_transaction_ids),
            },
        )
        for comparison in outcome.discrepancies:
            logger.warning(
                "discrepancy_detected",
                extra={
                    "reconciliation_id": str(record.id),
                    "account_id": comparison.account_id,
                    "expected": str(comparison.expected),
                    "actual": str(comparison.actual),
                    "difference": str(comparison.difference),
                    "severity": comparison.severity,
                },
            )
        return record

    def _write_record(
        self,
        target: date,
        outcome: ReconciliationOutcome,
        run_by: str | None,
    ) -> ReconciliationRecord:
        now = self.clock.now()
        alerts = [
            DiscrepancyAlert(
                account_id=comparison.account_id,
                expected_amount=comparison.expected,
                actual_amount=comparison.actual,
                difference=comparison.difference,
                severity=comparison.severity,
                status=DiscrepancyStatus.OPEN.value,
                created_at=now,
            )
            for comparison in outcome.discrepancies
        ]
        # Alerts join the record before the first flush so both are inserts
        record = ReconciliationRecord(
            reconciliation_date=target,
            status=outcome.status,
            expected_balances={c.account_id: str(c.expected) for c in outcome.comparisons},
            actual_balances={c.account_id: str(c.actual) for c in outcome.comparisons},
            discrepancies=[
                {
                    "account_id": c.account_id,
                    "expected": str(c.expected),
                    "actual": str(c.actual),
                    "difference": str(c.difference),
                    "severity": c.severity,
                }
                for c in outcome.discrepancies
            ],
            run_by=run_by,
            created_at=now,
            alerts=alerts,
        )
        self.session.add(record)
        self.session.flush()
        return record

    def _verify_day(self, day_start: datetime, day_end: datetime) -> int:
        verifier = IntegrityService(self.session, self._config)
        issue_count = 0
        for transaction in self._ledger.transactions_between(day_start, day_end):
            issue_count += len(verifier.verify_transaction(transaction).issues)
        return issue_count

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_date(self, reconciliation_date: date) -> ReconciliationRecord | None:
        return self._records.latest_for_date(reconciliation_date)

    def history(
        self,
        page: int = 1,
        limit: int | None = None,
        status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Page[ReconciliationRecord]:
        return self._records.history(
            page=page,
            limit=limit if limit is not None else self._config.pagination.default_limit,
            status=status,
            start_date=start_date,
            end_date=end_date,
            max_limit=self._config.pagination.max_limit,
        )

    def outstanding(
        self,
        severity: str | None = None,
        account_id: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[DiscrepancyAlert]:
        return self._records.outstanding_discrepancies(
            severity=severity,
            account_id=account_id,
            page=page,
            limit=limit if limit is not None else self._config.pagination.default_limit,
            max_limit=self._config.pagination.max_limit,
        )

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve_discrepancy(
        self,
        alert_id: UUID | str,
        actor_id: str,
        notes: str | None,
    ) -> DiscrepancyAlert:
        """
        Move an OPEN alert to RESOLVED.

        Raises:
            ResolutionNotesRequiredError: notes empty after trimming.
            DiscrepancyNotFoundError: unknown alert id.
            DiscrepancyAlreadyResolvedError: alert is not OPEN.
        """
        cleaned = (notes or "").strip()
        if not cleaned:
            raise ResolutionNotesRequiredError(str(alert_id))

        try:
            key = alert_id if isinstance(alert_id, UUID) else UUID(str(alert_id).strip())
        except ValueError as exc:
            raise DiscrepancyNotFoundError(str(alert_id)) from exc

        alert = self._records.get_alert(key)
        if alert is None:
            raise DiscrepancyNotFoundError(str(alert_id))
        if not alert.is_open:
            raise DiscrepancyAlreadyResolvedError(str(alert.id))

        alert.status = DiscrepancyStatus.RESOLVED.value
        alert.resolution_notes = cleaned
        alert.resolved_by = actor_id
        alert.resolved_at = self.clock.now()
        self.session.flush()

        self._auditor.record_discrepancy_resolved(
            alert_id=str(alert.id),
            account_id=alert.account_id,
            notes=cleaned,
            actor_id=actor_id,
        )
        logger.info(
            "discrepancy_resolved",
            extra={
                "alert_id": str(alert.id),
                "account_id": alert.account_id,
                "resolved_by": actor_id,
            },
        )
        return alert
