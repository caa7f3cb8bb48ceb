"""
Audit trail report tests.

Verifies:
- The period is half-open [start, end) and must be non-empty
- Dates, datetimes and ISO strings are accepted as bounds
- Summary totals use fixed-point sums of COMPLETED movements
- JSON and CSV encodings; unsupported formats are rejected
- Stored amounts are read in the configured currency
"""

import csv
import io
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from recon_config.schema import CurrencyConfig
from recon_kernel.domain.dtos import CorrectionRequest
from recon_kernel.exceptions import InvalidDateRangeError, UnsupportedFormatError
from recon_services.audit_report_service import CSV_COLUMNS, check_format
from recon_services.engine import ReconciliationEngine

from tests.conftest import TEST_ACTOR_ID


@pytest.fixture
def january(recon, ledger, clock):
    """Activity on 2024-01-01 plus one transaction on 2024-01-02."""
    ledger.account("ACC-1", balance="5000.00")
    ledger.transaction("ACC-1", "2000.00", "CREDIT", reference="BOOK-1")
    ledger.transaction("ACC-1", "৳500.00", "DEBIT")
    ledger.transaction("ACC-1", "300.00", "CREDIT", status="PENDING")
    ledger.transaction("ACC-1", "bogus", "CREDIT")
    recon.correct_balance(CorrectionRequest("ACC-1", "5000.00", "6500.00", "Posting lag"), TEST_ACTOR_ID)
    recon.reconcile()

    clock.set_time(datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc))
    ledger.transaction("ACC-1", "75.00")


class TestPeriod:
    @pytest.mark.parametrize(
        "start,end",
        [
            ("2024-01-02", "2024-01-01"),
            ("2024-01-01", "2024-01-01"),
            ("not-a-date", "2024-01-02"),
            ("2024-01-01", "2024-13-01"),
            (12345, "2024-01-02"),
        ],
    )
    def test_invalid_range(self, recon, start, end):
        with pytest.raises(InvalidDateRangeError) as exc_info:
            recon.generate_audit_trail(start, end)
        assert exc_info.value.code == "INVALID_DATE_RANGE"

    def test_end_is_exclusive(self, recon, january):
        report = recon.generate_audit_trail(date(2024, 1, 1), date(2024, 1, 2))
        assert report["summary"]["transaction_count"] == 4

        both_days = recon.generate_audit_trail("2024-01-01", "2024-01-03")
        assert both_days["summary"]["transaction_count"] == 5

    def test_datetime_bounds(self, recon, january):
        report = recon.generate_audit_trail(
            "2024-01-01T12:00:01Z", datetime(2024, 1, 1, 12, 0, 3, tzinfo=timezone.utc),
        )
        assert report["summary"]["transaction_count"] == 2
        assert report["period"]["start"] == "2024-01-01T12:00:01+00:00"


class TestJsonReport:
    def test_contents(self, recon, january):
        report = recon.generate_audit_trail("2024-01-01", "2024-01-02")

        assert report["summary"] == {
            "transaction_count": 4,
            "total_amount": "2800.00",
            "completed_credit_total": "2000.00",
            "completed_debit_total": "500.00",
            "discrepancy_count": 0,
            "correction_count": 1,
            "unparseable_amount_count": 1,
        }
        amounts = [(t["amount"], t["amount_text"]) for t in report["transactions"]]
        assert amounts == [
            ("2000.00", "2000.00"),
            ("500.00", "৳500.00"),
            ("300.00", "300.00"),
            (None, "bogus"),
        ]
        (correction,) = report["corrections"]
        assert correction["original_balance"] == "5000.00"
        assert correction["corrected_balance"] == "6500.00"
        assert correction["actor_id"] == TEST_ACTOR_ID

    def test_discrepancies_included(self, recon, ledger):
        ledger.account("ACC-1", balance="5000.00")
        ledger.transaction("ACC-1", "2000.00")
        recon.reconcile()

        report = recon.generate_audit_trail("2024-01-01", "2024-01-02")

        (alert,) = report["discrepancies"]
        assert alert["difference"] == "-2000.00"
        assert alert["severity"] == "MEDIUM"
        assert alert["status"] == "OPEN"

    def test_empty_period(self, recon):
        report = recon.generate_audit_trail("2023-01-01", "2023-02-01")

        assert report["transactions"] == []
        assert report["summary"]["total_amount"] == "0.00"

    def test_amounts_read_in_configured_currency(self, session_factory, config, clock, ledger):
        usd = replace(config, currency=CurrencyConfig(code="USD", symbol="$"))
        ledger.account("ACC-1", balance="0.00")
        ledger.transaction("ACC-1", "$1,250.00")
        ledger.transaction("ACC-1", "৳40.00")

        report = ReconciliationEngine(session_factory, usd, clock).generate_audit_trail(
            "2024-01-01", "2024-01-02",
        )

        assert report["currency"] == "USD"
        assert [t["amount"] for t in report["transactions"]] == ["1250.00", None]
        assert report["summary"]["unparseable_amount_count"] == 1

    def test_default_currency_named(self, recon):
        report = recon.generate_audit_trail("2023-01-01", "2023-02-01")
        assert report["currency"] == "BDT"

    def test_logs(self, recon, january, captured_logs):
        recon.generate_audit_trail("2024-01-01", "2024-01-02")

        messages = [r["message"] for r in captured_logs()]
        assert "audit_trail_generated" in messages
        assert "audit_trail_unparseable_amounts" in messages


class TestCsvReport:
    def test_rows(self, recon, january):
        text = recon.generate_audit_trail("2024-01-01", "2024-01-02", output_format="csv")

        rows = list(csv.DictReader(io.StringIO(text)))
        assert tuple(rows[0].keys()) == CSV_COLUMNS
        assert [r["record_type"] for r in rows] == ["transaction"] * 4 + ["correction"]
        assert rows[0]["amount"] == "2000.00"
        assert rows[0]["reference"] == "BOOK-1"
        assert rows[3]["amount"] == ""
        assert rows[4]["corrected_balance"] == "6500.00"
        assert Decimal(rows[4]["original_balance"]) == Decimal("5000")

    def test_header_only_when_empty(self, recon):
        text = recon.generate_audit_trail("2023-01-01", "2023-02-01", "csv")
        assert text == ",".join(CSV_COLUMNS) + "\n"


class TestFormats:
    @pytest.mark.parametrize("fmt", ["xml", "", "pdf"])
    def test_unsupported(self, recon, fmt):
        with pytest.raises(UnsupportedFormatError):
            recon.generate_audit_trail("2024-01-01", "2024-01-02", fmt)

    def test_format_checked_before_dates(self, recon):
        with pytest.raises(UnsupportedFormatError):
            recon.generate_audit_trail("garbage", "2024-01-02", "xml")

    def test_case_insensitive(self):
        assert check_format(" CSV ") == "csv"
