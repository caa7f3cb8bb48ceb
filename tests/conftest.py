"""
Pytest fixtures for the reconciliation engine test suite.

Provides:
- An isolated in-memory SQLite database per test (StaticPool, one shared
  connection), with tables and sequence counters created
- A DeterministicClock pinned to 2024-01-01 12:00 UTC
- ``ledger``: builder for accounts and transactions, committed on write
- ``recon``: the ReconciliationEngine facade wired to the test database
- ``captured_logs``: structured log records parsed back from JSON
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy import func, select

from recon_config import get_active_config
from recon_kernel.db import (
    build_engine,
    build_session_factory,
    create_tables,
    register_immutability_listeners,
    session_scope,
)
from recon_kernel.domain.clock import DeterministicClock
from recon_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from recon_kernel.models import AccountBalance, Transaction
from recon_kernel.services.auditor_service import AuditorService
from recon_services.engine import ReconciliationEngine

TEST_ACTOR_ID = "test-admin"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture recon_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, recon):
            recon.reconcile()
            logs = captured_logs()
            assert any(r["message"] == "reconciliation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("recon_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    db_engine = build_engine("sqlite://")
    create_tables(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def session(session_factory):
    """
    A session for direct service-level tests.

    Tests commit explicitly where they need writes to be visible to other
    sessions.
    """
    db_session = session_factory()
    yield db_session
    db_session.rollback()
    db_session.close()


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def config():
    return get_active_config()


@pytest.fixture
def recon(session_factory, config, clock):
    return ReconciliationEngine(session_factory, config, clock)


# =============================================================================
# Data builders
# =============================================================================


class LedgerBuilder:
    """
    Writes accounts and transactions the way the booking workflow would.

    Every write commits in its own session.  Each transaction advances the
    clock one second so created_at ordering is unambiguous.
    """

    def __init__(self, session_factory, clock):
        self._session_factory = session_factory
        self._clock = clock

    def account(
        self,
        account_id: str,
        balance: str = "0.00",
        opening: str | None = None,
    ) -> AccountBalance:
        row = AccountBalance(
            account_id=account_id,
            current_balance=Decimal(balance),
            opening_balance=Decimal(opening if opening is not None else balance),
            currency="BDT",
            updated_at=self._clock.now(),
        )
        with session_scope(self._session_factory) as s:
            s.add(row)
        return row

    def transaction(
        self,
        account_id: str,
        amount: str,
        transaction_type: str = "CREDIT",
        status: str = "COMPLETED",
        reference: str | None = None,
        created_at: datetime | None = None,
        audited: bool = True,
    ) -> Transaction:
        tx = Transaction(
            account_id=account_id,
            amount=amount,
            transaction_type=transaction_type,
            status=status,
            reference=reference,
            created_at=created_at or self._clock.now(),
        )
        with session_scope(self._session_factory) as s:
            s.add(tx)
            s.flush()
            if audited:
                AuditorService(s, self._clock).record_transaction_created(tx, actor_id="booking")
        self._clock.advance(1)
        return tx

    def set_balance(self, account_id: str, balance: str) -> None:
        """Overwrite a stored balance directly, bypassing the correction path."""
        with session_scope(self._session_factory) as s:
            row = s.execute(
                select(AccountBalance).where(AccountBalance.account_id == account_id)
            ).scalar_one()
            row.current_balance = Decimal(balance)
            row.updated_at = self._clock.now()

    def count(self, model) -> int:
        with session_scope(self._session_factory) as s:
            return s.execute(select(func.count()).select_from(model)).scalar_one()

    def balance_of(self, account_id: str) -> Decimal:
        with session_scope(self._session_factory) as s:
            return s.execute(
                select(AccountBalance.current_balance).where(AccountBalance.account_id == account_id)
            ).scalar_one()


@pytest.fixture
def ledger(session_factory, clock):
    return LedgerBuilder(session_factory, clock)
