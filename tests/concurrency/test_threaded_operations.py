"""
Operations racing on real threads.

Each test starts its callers together behind a Barrier, every caller on
its own thread with its own connection, against a file SQLite database
and, when RECON_TEST_POSTGRES_URL is set, a PostgreSQL one.  Whatever the
interleaving, every committed operation keeps its record and its audit
entry, sequence numbers are dense and the hash chain validates.
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from recon_kernel.db import build_engine, build_session_factory, create_tables, drop_tables
from recon_kernel.db import session_scope
from recon_kernel.domain.dtos import CorrectionRequest
from recon_kernel.models import AuditTrailEntry, BalanceCorrection, ReconciliationRecord
from recon_kernel.services.auditor_service import AuditorService
from recon_services.engine import ReconciliationEngine

from tests.conftest import LedgerBuilder

pytestmark = pytest.mark.concurrency

POSTGRES_URL = os.environ.get("RECON_TEST_POSTGRES_URL")


@pytest.fixture(
    params=[
        "sqlite-file",
        pytest.param("postgres", marks=pytest.mark.postgres),
    ]
)
def threaded_factory(request, tmp_path):
    if request.param == "postgres":
        if not POSTGRES_URL:
            pytest.skip("RECON_TEST_POSTGRES_URL not set")
        db_engine = build_engine(POSTGRES_URL)
        drop_tables(db_engine)
    else:
        db_engine = build_engine(f"sqlite:///{tmp_path / 'threads.db'}")
    create_tables(db_engine)
    yield build_session_factory(db_engine)
    if request.param == "postgres":
        drop_tables(db_engine)
    db_engine.dispose()


@pytest.fixture
def threaded_recon(threaded_factory, config, clock):
    return ReconciliationEngine(threaded_factory, config, clock)


@pytest.fixture
def threaded_ledger(threaded_factory, clock):
    return LedgerBuilder(threaded_factory, clock)


def _run_together(*calls):
    """Release every call at once on its own thread; results in call order."""
    barrier = threading.Barrier(len(calls))

    def _start(call):
        barrier.wait(timeout=10)
        return call()

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(_start, call) for call in calls]
        return [future.result(timeout=60) for future in futures]


def _entries(session_factory, clock):
    with session_scope(session_factory) as s:
        return sorted(AuditorService(s, clock).get_recent_entries(limit=100), key=lambda e: e.seq)


def _correction(recon, target, actor):
    request = CorrectionRequest("ACC-1", "5000.00", target, f"Adjustment by {actor}")
    return lambda: recon.correct_balance(request, actor)


class TestThreadedCorrections:
    def test_two_corrections_both_survive(self, threaded_recon, threaded_ledger, threaded_factory, clock):
        threaded_ledger.account("ACC-1", balance="5000.00")

        a, b = _run_together(
            _correction(threaded_recon, "5500.00", "ops-a"),
            _correction(threaded_recon, "5200.00", "ops-b"),
        )

        assert threaded_ledger.count(BalanceCorrection) == 2
        entries = _entries(threaded_factory, clock)
        assert [e.event_type for e in entries] == ["BALANCE_CORRECTION"] * 2
        assert [e.seq for e in entries] == [1, 2]
        assert threaded_recon.validate_audit_chain() is True

        # One caller saw the opening balance; the other saw the first write
        first, second = sorted((a, b), key=lambda c: c.live_balance_before != Decimal("5000.00"))
        assert first.live_balance_before == Decimal("5000.00")
        assert second.live_balance_before == first.corrected_balance
        assert threaded_ledger.balance_of("ACC-1") == second.corrected_balance
        assert [e.changes["stale_observation"] for e in entries] == [False, True]

    def test_many_corrections_keep_a_dense_chain(self, threaded_recon, threaded_ledger, threaded_factory, clock):
        threaded_ledger.account("ACC-1", balance="5000.00")

        corrections = _run_together(*(
            _correction(threaded_recon, f"{5000 + n}.00", f"ops-{n}") for n in range(1, 7)
        ))

        assert len({c.id for c in corrections}) == 6
        assert threaded_ledger.count(BalanceCorrection) == 6
        assert [e.seq for e in _entries(threaded_factory, clock)] == list(range(1, 7))
        assert threaded_recon.validate_audit_chain() is True


class TestThreadedReconcileAndCorrect:
    def test_pass_and_correction_interleave_cleanly(
        self, threaded_recon, threaded_ledger, threaded_factory, clock,
    ):
        threaded_ledger.account("ACC-1", balance="5000.00", opening="5000.00")

        record, correction = _run_together(
            lambda: threaded_recon.reconcile(run_by="ops-scheduler"),
            _correction(threaded_recon, "5300.00", "ops-a"),
        )

        # Either order is consistent: before the correction, or checkpointed on it
        assert record.status == "RECONCILED"
        assert record.actual_balances["ACC-1"] in ("5000.00", "5300.00")
        assert correction.corrected_balance == Decimal("5300.00")
        assert threaded_ledger.count(ReconciliationRecord) == 1
        assert threaded_ledger.count(BalanceCorrection) == 1

        entries = _entries(threaded_factory, clock)
        assert sorted(e.event_type for e in entries) == ["BALANCE_CORRECTION", "RECONCILIATION_RUN"]
        assert [e.seq for e in entries] == [1, 2]
        assert threaded_ledger.count(AuditTrailEntry) == 2
        assert threaded_recon.validate_audit_chain() is True
