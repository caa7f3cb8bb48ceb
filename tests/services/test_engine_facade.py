"""
ReconciliationEngine facade tests.

Verifies:
- An operation that outlives its timeout is rolled back, not committed
- Store failures surface as UnavailableError with the original chained
"""

import time
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from recon_kernel.domain.dtos import CorrectionRequest
from recon_kernel.exceptions import UnavailableError
from recon_kernel.models import AuditTrailEntry, BalanceCorrection
from recon_services.correction_service import CorrectionService
from recon_services.engine import ReconciliationEngine
from recon_services.health_monitor import HealthMonitor

from tests.conftest import TEST_ACTOR_ID


def _request(correct="9999.00"):
    return CorrectionRequest("ACC-1", "5000.00", correct, "Late statement")


@pytest.fixture
def slow_corrections(monkeypatch):
    applied = CorrectionService.correct_balance

    def slow_correction(self, request, actor_id):
        correction = applied(self, request, actor_id)
        time.sleep(0.2)
        return correction

    monkeypatch.setattr(CorrectionService, "correct_balance", slow_correction)


class TestTimeout:
    def test_late_correction_is_rolled_back(self, session_factory, config, clock, ledger, slow_corrections):
        ledger.account("ACC-1", balance="5000.00")
        recon = ReconciliationEngine(session_factory, config, clock, timeout=0.05)

        with pytest.raises(UnavailableError) as exc_info:
            recon.correct_balance(_request(), TEST_ACTOR_ID)

        assert exc_info.value.code == "STORE_UNAVAILABLE"
        assert exc_info.value.operation == "correct_balance"
        assert ledger.balance_of("ACC-1") == Decimal("5000.00")
        assert ledger.count(BalanceCorrection) == 0
        assert ledger.count(AuditTrailEntry) == 0

    def test_within_timeout_commits(self, session_factory, config, clock, ledger):
        ledger.account("ACC-1", balance="5000.00")
        recon = ReconciliationEngine(session_factory, config, clock, timeout=30)

        recon.correct_balance(_request("5100.00"), TEST_ACTOR_ID)

        assert ledger.balance_of("ACC-1") == Decimal("5100.00")
        assert ledger.count(BalanceCorrection) == 1

    def test_deadline_logged(self, session_factory, config, clock, ledger, slow_corrections, captured_logs):
        ledger.account("ACC-1", balance="5000.00")
        recon = ReconciliationEngine(session_factory, config, clock, timeout=0.05)

        with pytest.raises(UnavailableError):
            recon.correct_balance(_request(), TEST_ACTOR_ID)

        logs = captured_logs()
        (exceeded,) = [r for r in logs if r["message"] == "operation_deadline_exceeded"]
        assert exceeded["operation"] == "correct_balance"
        assert "transaction_rolled_back" in [r["message"] for r in logs]
        completed = [r for r in logs if r["message"] == "operation_completed"]
        assert completed[-1]["outcome"] == "error"


class TestStoreFailures:
    def test_operational_error_is_unavailable(self, recon, monkeypatch):
        def unreachable(self):
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

        monkeypatch.setattr(HealthMonitor, "monitor", unreachable)

        with pytest.raises(UnavailableError) as exc_info:
            recon.monitor_financial_health()

        assert exc_info.value.operation == "monitor_financial_health"
        assert isinstance(exc_info.value.__cause__, OperationalError)
