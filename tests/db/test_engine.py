"""
Engine construction tests.

Verifies:
- In-memory SQLite shares one connection; file SQLite opens one per session
- File SQLite sessions never see or commit each other's uncommitted writes
- A PostgreSQL statement timeout is passed to the server as a connect option
"""

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool, StaticPool

from recon_kernel.db import build_engine, build_session_factory, create_tables, session_scope
from recon_kernel.db.engine import postgres_connect_args
from recon_kernel.models import AccountBalance

from tests.conftest import LedgerBuilder


@pytest.fixture
def file_engine(tmp_path):
    db_engine = build_engine(f"sqlite:///{tmp_path / 'recon.db'}", statement_timeout=0.2)
    create_tables(db_engine)
    yield db_engine
    db_engine.dispose()


class TestPools:
    @pytest.mark.parametrize("url", ["sqlite://", "sqlite:///:memory:"])
    def test_memory_database_is_shared(self, url):
        engine = build_engine(url)
        try:
            assert isinstance(engine.pool, StaticPool)
        finally:
            engine.dispose()

    def test_file_database_connects_per_session(self, file_engine):
        assert isinstance(file_engine.pool, NullPool)

    def test_postgres_statement_timeout(self):
        assert postgres_connect_args(2.5) == {
            "options": "-c statement_timeout=2500 -c lock_timeout=2500",
        }
        assert postgres_connect_args(None) == {}


class TestFileSessions:
    def test_uncommitted_write_is_not_shared(self, file_engine, clock):
        factory = build_session_factory(file_engine)
        LedgerBuilder(factory, clock).account("ACC-1", balance="5000.00")

        first = factory()
        second = factory()
        try:
            first.get(AccountBalance, "ACC-1").current_balance = Decimal("9999.00")
            first.flush()

            # The writer holds the database; a second session waits, then gives up
            with pytest.raises(OperationalError):
                second.execute(select(AccountBalance.current_balance)).scalar_one()
            second.rollback()
            first.rollback()
        finally:
            second.close()
            first.close()

        with session_scope(factory) as s:
            assert s.get(AccountBalance, "ACC-1").current_balance == Decimal("5000.00")

    def test_sessions_commit_independently(self, file_engine, clock):
        factory = build_session_factory(file_engine)
        LedgerBuilder(factory, clock).account("ACC-1", balance="5000.00")

        with pytest.raises(RuntimeError):
            with session_scope(factory) as s:
                s.get(AccountBalance, "ACC-1").current_balance = Decimal("9999.00")
                s.flush()
                raise RuntimeError("audit append failed")

        with session_scope(factory) as s:
            s.get(AccountBalance, "ACC-1").current_balance = Decimal("5100.00")

        with session_scope(factory) as s:
            assert s.get(AccountBalance, "ACC-1").current_balance == Decimal("5100.00")
