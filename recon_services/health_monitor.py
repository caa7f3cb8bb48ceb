"""
recon_services.health_monitor -- Financial health snapshots.

Responsibility:
    Scans OPEN discrepancy alerts and stored balances, classifies the
    result, and appends a FinancialHealthCheck row on every call.

Invariants enforced:
    - Each ``monitor`` call persists exactly one snapshot, healthy or not.
    - Status is ISSUES_DETECTED iff there is at least one OPEN alert or at
      least one negative balance.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy.orm import Session

from recon_config.schema import ReconciliationConfig
from recon_kernel.domain.clock import Clock
from recon_kernel.domain.dtos import Page
from recon_kernel.logging_config import get_logger
from recon_kernel.models.health_check import FinancialHealthCheck, HealthStatus
from recon_kernel.selectors.health_selector import HealthSelector
from recon_kernel.selectors.ledger_selector import LedgerSelector
from recon_kernel.selectors.reconciliation_selector import ReconciliationSelector
from recon_kernel.services.base import BaseService

logger = get_logger("services.health")

OUTSTANDING_DISCREPANCIES = "OUTSTANDING_DISCREPANCIES"
NEGATIVE_BALANCE = "NEGATIVE_BALANCE"


class HealthMonitor(BaseService):
    """Produces and lists health snapshots."""

    def __init__(
        self,
        session: Session,
        config: ReconciliationConfig,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._config = config
        self._ledger = LedgerSelector(session)
        self._records = ReconciliationSelector(session)
        self._history = HealthSelector(session)

    def monitor(self) -> FinancialHealthCheck:
        open_count = self._records.count_open_alerts()
        anomalies = [
            {
                "account_id": balance.account_id,
                "balance": str(balance.current_balance),
                "type": NEGATIVE_BALANCE,
            }
            for balance in self._ledger.negative_balances()
        ]

        alerts = []
        if open_count:
            alerts.append({
                "type": OUTSTANDING_DISCREPANCIES,
                "severity": "HIGH",
                "message": f"{open_count} unresolved discrepancies",
            })
        if anomalies:
            alerts.append({
                "type": NEGATIVE_BALANCE,
                "severity": "HIGH",
                "message": f"{len(anomalies)} accounts with negative balance",
            })

        status = HealthStatus.ISSUES_DETECTED if alerts else HealthStatus.HEALTHY
        check = FinancialHealthCheck(
            status=status.value,
            metrics={
                "outstanding_discrepancies": open_count,
                "balance_anomalies": anomalies,
            },
            alerts=alerts,
            checked_at=self.clock.now(),
        )
        self.session.add(check)
        self.session.flush()

        log = logger.warning if alerts else logger.info
        log(
            "health_check_completed",
            extra={
                "health_check_id": str(check.id),
                "status": status.value,
                "outstanding_discrepancies": open_count,
                "balance_anomaly_count": len(anomalies),
            },
        )
        return check

    def history(self, days: int | None = None) -> list[FinancialHealthCheck]:
        """Snapshots from the last ``days`` days, newest first."""
        window = days if days is not None else self._config.health.history_days
        return self._history.since(self.clock.now() - timedelta(days=window))

    def history_page(
        self,
        days: int | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[FinancialHealthCheck]:
        window = days if days is not None else self._config.health.history_days
        return self._history.history(
            since=self.clock.now() - timedelta(days=window),
            page=page,
            limit=limit if limit is not None else self._config.pagination.default_limit,
            max_limit=self._config.pagination.max_limit,
        )
