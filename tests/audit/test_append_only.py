"""
Append-only enforcement tests.

Audit entries, corrections, reconciliation records and health checks can
never be updated or deleted through the ORM.  Discrepancy alerts allow only
the OPEN -> RESOLVED transition.  COMPLETED transactions keep their amount
and account.
"""

import pytest
from sqlalchemy import select

from recon_kernel.db import session_scope
from recon_kernel.domain.dtos import CorrectionRequest
from recon_kernel.exceptions import ImmutabilityViolationError
from recon_kernel.models import (
    AuditTrailEntry,
    BalanceCorrection,
    DiscrepancyAlert,
    FinancialHealthCheck,
    ReconciliationRecord,
    Transaction,
)

from tests.conftest import TEST_ACTOR_ID


def _first(session, model):
    return session.execute(select(model)).scalars().first()


@pytest.fixture
def history(recon, ledger):
    """One of every append-only row, plus an OPEN alert."""
    ledger.account("ACC-1", balance="5000.00")
    ledger.transaction("ACC-1", "2000.00")
    ledger.account("ACC-2", balance="100.00")
    recon.correct_balance(CorrectionRequest("ACC-2", "100.00", "120.00", "Fee refund"), TEST_ACTOR_ID)
    recon.reconcile()
    recon.monitor_financial_health()


class TestAppendOnlyTables:
    @pytest.mark.parametrize(
        "model,field,value",
        [
            (AuditTrailEntry, "actor_id", "intruder"),
            (BalanceCorrection, "reason", "rewritten"),
            (ReconciliationRecord, "status", "RECONCILED"),
            (FinancialHealthCheck, "status", "HEALTHY"),
        ],
    )
    def test_update_blocked(self, history, session_factory, model, field, value):
        with pytest.raises(ImmutabilityViolationError):
            with session_scope(session_factory) as s:
                setattr(_first(s, model), field, value)

    @pytest.mark.parametrize(
        "model",
        [AuditTrailEntry, BalanceCorrection, ReconciliationRecord, FinancialHealthCheck, DiscrepancyAlert],
    )
    def test_delete_blocked(self, history, session_factory, ledger, model):
        before = ledger.count(model)

        with pytest.raises(ImmutabilityViolationError):
            with session_scope(session_factory) as s:
                s.delete(_first(s, model))

        assert ledger.count(model) == before


class TestDiscrepancyAlertTransitions:
    def test_other_fields_frozen(self, history, session_factory):
        with pytest.raises(ImmutabilityViolationError, match="difference"):
            with session_scope(session_factory) as s:
                _first(s, DiscrepancyAlert).difference = 0

    def test_resolution_requires_notes(self, history, session_factory):
        with pytest.raises(ImmutabilityViolationError, match="notes"):
            with session_scope(session_factory) as s:
                _first(s, DiscrepancyAlert).status = "RESOLVED"

    def test_resolved_alert_cannot_reopen(self, history, recon, session_factory):
        alert_id = recon.get_outstanding_discrepancies().items[0].id
        recon.resolve_discrepancy(alert_id, "ops-1", "Explained")

        with pytest.raises(ImmutabilityViolationError):
            with session_scope(session_factory) as s:
                s.get(DiscrepancyAlert, alert_id).status = "OPEN"

    def test_direct_resolution_with_notes_allowed(self, history, session_factory):
        with session_scope(session_factory) as s:
            alert = _first(s, DiscrepancyAlert)
            alert.status = "RESOLVED"
            alert.resolution_notes = "Closed by migration"


class TestTransactionFreeze:
    def test_completed_amount_frozen(self, history, session_factory):
        with pytest.raises(ImmutabilityViolationError):
            with session_scope(session_factory) as s:
                _first(s, Transaction).amount = "1.00"

    def test_pending_amount_editable(self, ledger, session_factory):
        tx = ledger.transaction("ACC-1", "10.00", status="PENDING")

        with session_scope(session_factory) as s:
            s.get(Transaction, tx.id).amount = "12.00"

        with session_scope(session_factory) as s:
            assert s.get(Transaction, tx.id).amount == "12.00"
