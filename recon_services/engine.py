"""
recon_services.engine -- ReconciliationEngine facade.

Responsibility:
    The operation surface exposed to schedulers, admin APIs and the CLI.
    Each call opens its own session from the injected factory, wires the
    services it needs, commits on success and rolls back on any error.

Architecture position:
    Services -- top of the service layer.  The only place that owns
    transaction boundaries.

Invariants enforced:
    - One session and one database transaction per operation.
    - Store connectivity failures surface as UnavailableError (original
      chained as ``__cause__``) and are never retried here.
    - Every call runs with a fresh correlation id bound into LogContext and
      logs its duration.

Usage:
    engine = build_engine("postgresql://...")
    recon = ReconciliationEngine(build_session_factory(engine), get_active_config())
    record = recon.reconcile(date(2024, 1, 15))
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from datetime import date
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from recon_config import get_active_config
from recon_config.schema import ReconciliationConfig
from recon_kernel.db.engine import session_scope
from recon_kernel.domain.clock import Clock, SystemClock
from recon_kernel.domain.dtos import CorrectionRequest, Page, VerificationResult
from recon_kernel.exceptions import UnavailableError
from recon_kernel.logging_config import LogContext, get_logger
from recon_kernel.models.balance_correction import BalanceCorrection
from recon_kernel.models.health_check import FinancialHealthCheck
from recon_kernel.models.reconciliation import DiscrepancyAlert, ReconciliationRecord
from recon_kernel.models.transaction import Transaction
from recon_kernel.services.auditor_service import AuditorService
from recon_services.audit_report_service import AuditReportService, check_format, render_report
from recon_services.correction_service import CorrectionService
from recon_services.health_monitor import HealthMonitor
from recon_services.integrity_service import IntegrityService
from recon_services.reconciliation_service import ReconciliationService

logger = get_logger("services.engine")

_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


class ReconciliationEngine:
    """
    Facade over the reconciliation services.

    Contract:
        Receives a session factory, an optional ReconciliationConfig
        (defaults to ``get_active_config()``) and an optional Clock.
        With ``timeout`` set, an operation whose work runs past it is rolled
        back and reported as UnavailableError instead of committing.
        Returned ORM objects are detached but fully loaded.

    Non-goals:
        - Does NOT retry.  Retry policy belongs to the caller.
        - Does NOT serialise callers; concurrent operations are allowed.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: ReconciliationConfig | None = None,
        clock: Clock | None = None,
        timeout: float | None = None,
    ):
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._timeout = timeout

    @property
    def config(self) -> ReconciliationConfig:
        return self._config

    def _check_deadline(self, operation: str, t0: float) -> None:
        # Raising inside the session scope rolls the work back.
        if self._timeout is None:
            return
        elapsed = time.monotonic() - t0
        if elapsed > self._timeout:
            logger.error(
                "operation_deadline_exceeded",
                extra={
                    "operation": operation,
                    "timeout_s": self._timeout,
                    "elapsed_ms": round(elapsed * 1000, 2),
                },
            )
            raise UnavailableError(operation, f"timed out after {self._timeout}s")

    @contextmanager
    def _operation(self, operation: str, **context: Any) -> Generator[Session, None, None]:
        t0 = time.monotonic()
        outcome = "error"
        with LogContext.bind(correlation_id=str(uuid4()), **context):
            logger.info("operation_started", extra={"operation": operation})
            try:
                with session_scope(self._session_factory) as session:
                    yield session
                    self._check_deadline(operation, t0)
                outcome = "ok"
            except _UNAVAILABLE_ERRORS as exc:
                logger.error(
                    "store_unavailable",
                    extra={"operation": operation, "error_type": type(exc).__name__},
                )
                raise UnavailableError(operation, str(exc).splitlines()[0]) from exc
            finally:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.info(
                    "operation_completed",
                    extra={
                        "operation": operation,
                        "outcome": outcome,
                        "duration_ms": duration_ms,
                    },
                )

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def reconcile(
        self,
        reconciliation_date: date | None = None,
        run_by: str | None = None,
    ) -> ReconciliationRecord:
        with self._operation("reconcile", actor_id=run_by) as session:
            return ReconciliationService(session, self._config, self._clock).reconcile(
                reconciliation_date, run_by=run_by,
            )

    def get_reconciliation_by_date(self, reconciliation_date: date) -> ReconciliationRecord | None:
        with self._operation("get_reconciliation_by_date") as session:
            return ReconciliationService(session, self._config, self._clock).get_by_date(
                reconciliation_date,
            )

    def get_reconciliation_history(
        self,
        page: int = 1,
        limit: int | None = None,
        status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Page[ReconciliationRecord]:
        with self._operation("get_reconciliation_history") as session:
            return ReconciliationService(session, self._config, self._clock).history(
                page=page, limit=limit, status=status,
                start_date=start_date, end_date=end_date,
            )

    def get_outstanding_discrepancies(
        self,
        severity: str | None = None,
        account_id: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[DiscrepancyAlert]:
        with self._operation("get_outstanding_discrepancies") as session:
            return ReconciliationService(session, self._config, self._clock).outstanding(
                severity=severity, account_id=account_id, page=page, limit=limit,
            )

    def resolve_discrepancy(
        self,
        alert_id: UUID | str,
        actor_id: str,
        notes: str | None,
    ) -> DiscrepancyAlert:
        with self._operation("resolve_discrepancy", actor_id=actor_id) as session:
            return ReconciliationService(session, self._config, self._clock).resolve_discrepancy(
                alert_id, actor_id, notes,
            )

    # =========================================================================
    # Integrity
    # =========================================================================

    def verify(self, transaction_id: UUID | str) -> VerificationResult:
        with self._operation("verify", transaction_id=str(transaction_id)) as session:
            return IntegrityService(session, self._config).verify(transaction_id)

    def get_transaction(self, transaction_id: UUID | str) -> Transaction:
        with self._operation("get_transaction", transaction_id=str(transaction_id)) as session:
            return IntegrityService(session, self._config).get_transaction(transaction_id)

    # =========================================================================
    # Corrections
    # =========================================================================

    def correct_balance(self, request: CorrectionRequest, actor_id: str) -> BalanceCorrection:
        with self._operation(
            "correct_balance", actor_id=actor_id, account_id=request.account_id,
        ) as session:
            return CorrectionService(session, self._config, self._clock).correct_balance(
                request, actor_id,
            )

    def get_correction_history(
        self,
        page: int = 1,
        limit: int | None = None,
        account_id: str | None = None,
    ) -> Page[BalanceCorrection]:
        with self._operation("get_correction_history") as session:
            return CorrectionService(session, self._config, self._clock).history(
                page=page, limit=limit, account_id=account_id,
            )

    # =========================================================================
    # Audit trail and health
    # =========================================================================

    def generate_audit_trail(
        self,
        start: Any,
        end: Any,
        output_format: str = "json",
    ) -> dict[str, Any] | str:
        fmt = check_format(output_format)
        with self._operation("generate_audit_trail") as session:
            report = AuditReportService(session, self._config, self._clock).generate(start, end)
        return render_report(report, fmt)

    def validate_audit_chain(self) -> bool:
        with self._operation("validate_audit_chain") as session:
            return AuditorService(session, self._clock).validate_chain()

    def monitor_financial_health(self) -> FinancialHealthCheck:
        with self._operation("monitor_financial_health") as session:
            return HealthMonitor(session, self._config, self._clock).monitor()

    def get_health_history(self, days: int | None = None) -> list[FinancialHealthCheck]:
        with self._operation("get_health_history") as session:
            return HealthMonitor(session, self._config, self._clock).history(days)

    def get_health_history_page(
        self,
        days: int | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[FinancialHealthCheck]:
        with self._operation("get_health_history_page") as session:
            return HealthMonitor(session, self._config, self._clock).history_page(
                days, page=page, limit=limit,
            )
