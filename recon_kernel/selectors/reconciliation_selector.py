"""
Module: recon_kernel.selectors.reconciliation_selector
Responsibility: Read-only queries over reconciliation records and
    discrepancy alerts: lookups by date, paginated history, outstanding
    discrepancies.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Listings are newest first (created_at DESC, id DESC).
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import func, select

from recon_kernel.domain.dtos import Page
from recon_kernel.models.reconciliation import (
    DiscrepancyAlert,
    DiscrepancyStatus,
    ReconciliationRecord,
    ReconciliationStatus,
)
from recon_kernel.selectors.base import DEFAULT_MAX_LIMIT, BaseSelector


class ReconciliationSelector(BaseSelector):
    """Selector for reconciliation output."""

    def latest_for_date(self, reconciliation_date: date) -> ReconciliationRecord | None:
        """Most recent record for the date; earlier re-runs remain in history."""
        return self.session.execute(
            select(ReconciliationRecord)
            .where(ReconciliationRecord.reconciliation_date == reconciliation_date)
            .order_by(ReconciliationRecord.created_at.desc(), ReconciliationRecord.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def latest_reconciled_before(self, reconciliation_date: date) -> ReconciliationRecord | None:
        """Most recent RECONCILED record for a date earlier than ``reconciliation_date``."""
        return self.session.execute(
            select(ReconciliationRecord)
            .where(
                ReconciliationRecord.reconciliation_date < reconciliation_date,
                ReconciliationRecord.status == ReconciliationStatus.RECONCILED.value,
            )
            .order_by(
                ReconciliationRecord.reconciliation_date.desc(),
                ReconciliationRecord.created_at.desc(),
                ReconciliationRecord.id.desc(),
            )
            .limit(1)
        ).scalar_one_or_none()

    def history(
        self,
        page: int = 1,
        limit: int = 20,
        status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        max_limit: int = DEFAULT_MAX_LIMIT,
    ) -> Page[ReconciliationRecord]:
        """
        Paginated records, newest first.

        ``start_date`` and ``end_date`` bound ``reconciliation_date``
        inclusively.
        """
        query = select(ReconciliationRecord)
        if status is not None:
            query = query.where(ReconciliationRecord.status == status)
        if start_date is not None:
            query = query.where(ReconciliationRecord.reconciliation_date >= start_date)
        if end_date is not None:
            query = query.where(ReconciliationRecord.reconciliation_date <= end_date)
        query = query.order_by(
            ReconciliationRecord.created_at.desc(),
            ReconciliationRecord.id.desc(),
        )
        return self._paginate(query, page, limit, max_limit)

    # Alerts

    def get_alert(self, alert_id: UUID) -> DiscrepancyAlert | None:
        return self.session.get(DiscrepancyAlert, alert_id)

    def outstanding_discrepancies(
        self,
        severity: str | None = None,
        account_id: str | None = None,
        page: int = 1,
        limit: int = 20,
        max_limit: int = DEFAULT_MAX_LIMIT,
    ) -> Page[DiscrepancyAlert]:
        """OPEN alerts, newest first, optionally filtered."""
        query = select(DiscrepancyAlert).where(
            DiscrepancyAlert.status == DiscrepancyStatus.OPEN.value
        )
        if severity is not None:
            query = query.where(DiscrepancyAlert.severity == severity)
        if account_id is not None:
            query = query.where(DiscrepancyAlert.account_id == account_id)
        query = query.order_by(DiscrepancyAlert.created_at.desc(), DiscrepancyAlert.id.desc())
        return self._paginate(query, page, limit, max_limit)

    def count_open_alerts(self) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(DiscrepancyAlert)
            .where(DiscrepancyAlert.status == DiscrepancyStatus.OPEN.value)
        ).scalar_one()

    def alerts_between(self, start: datetime, end: datetime) -> list[DiscrepancyAlert]:
        """Alerts created in ``[start, end)``, oldest first."""
        return list(
            self.session.execute(
                select(DiscrepancyAlert)
                .where(
                    DiscrepancyAlert.created_at >= start,
                    DiscrepancyAlert.created_at < end,
                )
                .order_by(DiscrepancyAlert.created_at, DiscrepancyAlert.account_id)
            ).scalars().all()
        )
