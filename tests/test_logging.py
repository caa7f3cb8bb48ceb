"""Tests for the structured logging system (recon_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from recon_kernel.exceptions import AccountNotFoundError
from recon_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Give each test an unconfigured logger, then restore the suite setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "recon_kernel.test"
        assert "ts" in record

    def test_extra_fields_at_top_level(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("reconciliation_completed", extra={"discrepancy_count": 2})

        assert _parse_log(stream)["discrepancy_count"] == 2

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="run-1", account_id="ACC-1")
        get_logger("test").info("correction_applied")

        record = _parse_log(stream)
        assert record["correlation_id"] == "run-1"
        assert record["account_id"] == "ACC-1"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "actor_id" not in record

    def test_amounts_dates_and_ids_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "discrepancy_detected",
            extra={"difference": Decimal("-2000.00"), "alert_id": uid, "day": date(2024, 1, 15)},
        )

        record = _parse_log(stream)
        assert record["difference"] == "-2000.00"
        assert record["alert_id"] == str(uid)
        assert record["day"] == "2024-01-15"

    def test_plain_exception(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise AccountNotFoundError("ACC-404")
        except AccountNotFoundError:
            get_logger("test").error("lookup_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "ACCOUNT_NOT_FOUND"
        assert record["exc_type"] == "AccountNotFoundError"
        assert record["exc_account_id"] == "ACC-404"

    def test_level_filters_debug(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second")
        logger.debug("third")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_set_and_get(self):
        LogContext.set(correlation_id="x", reconciliation_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "reconciliation_id": "y"}

    def test_set_is_additive(self):
        LogContext.set(correlation_id="a")
        LogContext.set(transaction_id="t")
        assert LogContext.get_all() == {"correlation_id": "a", "transaction_id": "t"}

    def test_clear(self):
        LogContext.set(correlation_id="x", actor_id="ops")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_value(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", account_id="ACC-1"):
            assert LogContext.get_all() == {"correlation_id": "inner", "account_id": "ACC-1"}
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_ignores_unknown_and_none(self):
        with LogContext.bind(correlation_id=None, unknown_field="zzz"):
            assert LogContext.get_all() == {}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(actor_id="ops"):
                raise RuntimeError("fail")
        assert "actor_id" not in LogContext.get_all()


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)

        handlers = logging.getLogger("recon_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers
        assert sum(isinstance(h.formatter, StructuredFormatter) for h in handlers) == 1

    def test_does_not_propagate_to_root(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("recon_kernel").propagate is False

    def test_get_logger_returns_child(self):
        assert get_logger("services.reconciliation").name == "recon_kernel.services.reconciliation"

    def test_children_inherit_level(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "recon_kernel.deep.nested.module"
