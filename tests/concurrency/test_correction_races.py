"""
Racing balance corrections.

Two operators read the same balance and both submit a correction.  The
second commit wins, both corrections and both audit entries are kept, and
the loser's stale observation is flagged.  Sessions are interleaved on one
connection: the second session flushes only after the first commits.
"""

from decimal import Decimal

import pytest

from recon_kernel.domain.dtos import CorrectionRequest
from recon_kernel.models import AuditTrailEntry, BalanceCorrection
from recon_kernel.services.auditor_service import AuditorService
from recon_services.correction_service import CorrectionService

pytestmark = pytest.mark.concurrency


def _correct(session, config, clock, observed, target, actor):
    return CorrectionService(session, config, clock).correct_balance(
        CorrectionRequest("ACC-1", observed, target, f"Adjustment by {actor}"),
        actor,
    )


class TestCorrectionRace:
    def test_last_write_wins(self, session_factory, config, clock, ledger):
        ledger.account("ACC-1", balance="5000.00")

        first = session_factory()
        second = session_factory()
        try:
            a = _correct(first, config, clock, "5000.00", "5500.00", "ops-a")
            first.commit()
            clock.advance(1)
            b = _correct(second, config, clock, "5000.00", "5200.00", "ops-b")
            second.commit()
        finally:
            first.close()
            second.close()

        assert ledger.balance_of("ACC-1") == Decimal("5200.00")
        assert ledger.count(BalanceCorrection) == 2
        assert ledger.count(AuditTrailEntry) == 2
        assert a.live_balance_before == Decimal("5000.00")
        assert b.live_balance_before == Decimal("5500.00")

    def test_loser_is_flagged_and_chain_stays_valid(self, session_factory, config, clock, ledger):
        ledger.account("ACC-1", balance="5000.00")

        first = session_factory()
        second = session_factory()
        try:
            _correct(first, config, clock, "5000.00", "5500.00", "ops-a")
            first.commit()
            clock.advance(1)
            _correct(second, config, clock, "5000.00", "5200.00", "ops-b")
            second.commit()
        finally:
            first.close()
            second.close()

        check = session_factory()
        try:
            auditor = AuditorService(check, clock)
            entries = list(reversed(auditor.get_recent_entries()))
            assert [e.actor_id for e in entries] == ["ops-a", "ops-b"]
            assert [e.changes["stale_observation"] for e in entries] == [False, True]
            assert [e.seq for e in entries] == [1, 2]
            assert auditor.validate_chain() is True
        finally:
            check.close()

    def test_failed_correction_does_not_consume_a_sequence(self, session_factory, config, clock, ledger):
        ledger.account("ACC-1", balance="5000.00")

        doomed = session_factory()
        try:
            _correct(doomed, config, clock, "5000.00", "5100.00", "ops-a")
            doomed.rollback()
        finally:
            doomed.close()

        winner = session_factory()
        try:
            _correct(winner, config, clock, "5000.00", "5300.00", "ops-b")
            winner.commit()
        finally:
            winner.close()

        assert ledger.balance_of("ACC-1") == Decimal("5300.00")
        check = session_factory()
        try:
            (entry,) = AuditorService(check, clock).get_recent_entries()
            assert entry.seq == 1
            assert entry.changes["stale_observation"] is False
        finally:
            check.close()
