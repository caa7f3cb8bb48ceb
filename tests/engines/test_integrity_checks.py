"""
Tests for TransactionIntegrityChecker.

Covers the four checks (amountValidation, duplicateCheck,
auditCorrelation, accountReference) and their independence.
"""

from datetime import datetime, timedelta, timezone

import pytest

from recon_engines.integrity import (
    IntegrityContext,
    TransactionFacts,
    TransactionIntegrityChecker,
)
from recon_kernel.domain.dtos import IntegrityCheck

T0 = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def checker():
    return TransactionIntegrityChecker()


def _facts(
    transaction_id="tx-1",
    account_id="ACC-1",
    amount_text="1000.00",
    status="COMPLETED",
    reference="BOOK-42",
    created_at=T0,
):
    return TransactionFacts(
        transaction_id=transaction_id,
        account_id=account_id,
        amount_text=amount_text,
        transaction_type="CREDIT",
        status=status,
        reference=reference,
        created_at=created_at,
    )


def _context(facts=None, neighbours=(), has_creation_audit=True, account_exists=True):
    return IntegrityContext(
        transaction=facts or _facts(),
        neighbours=tuple(neighbours),
        has_creation_audit=has_creation_audit,
        account_exists=account_exists,
        duplicate_window_seconds=300,
    )


class TestAmountValidation:
    def test_valid(self, checker):
        assert checker.check_amount(_context()) is None

    @pytest.mark.parametrize("text", ["abc", "", "10.005"])
    def test_malformed(self, checker, text):
        issue = checker.check_amount(_context(_facts(amount_text=text)))
        assert issue.check == IntegrityCheck.AMOUNT_VALIDATION

    @pytest.mark.parametrize("text", ["0", "-5.00"])
    def test_not_positive(self, checker, text):
        issue = checker.check_amount(_context(_facts(amount_text=text)))
        assert issue is not None
        assert "not positive" in issue.description


class TestDuplicateCheck:
    def test_same_reference_and_amount_within_window(self, checker):
        other = _facts(transaction_id="tx-2", created_at=T0 + timedelta(minutes=1))
        issue = checker.check_duplicates(_context(neighbours=(other,)))

        assert issue.check == IntegrityCheck.DUPLICATE_CHECK
        assert issue.related_ids == ("tx-2",)

    def test_amount_compared_after_parsing(self, checker):
        other = _facts(transaction_id="tx-2", amount_text="৳1,000")
        assert checker.check_duplicates(_context(neighbours=(other,))) is not None

    def test_outside_window(self, checker):
        other = _facts(transaction_id="tx-2", created_at=T0 + timedelta(seconds=301))
        assert checker.check_duplicates(_context(neighbours=(other,))) is None

    def test_different_amount(self, checker):
        other = _facts(transaction_id="tx-2", amount_text="1000.01")
        assert checker.check_duplicates(_context(neighbours=(other,))) is None

    def test_different_account_or_reference(self, checker):
        neighbours = (
            _facts(transaction_id="tx-2", account_id="ACC-2"),
            _facts(transaction_id="tx-3", reference="BOOK-43"),
        )
        assert checker.check_duplicates(_context(neighbours=neighbours)) is None

    def test_missing_references_match(self, checker):
        facts = _facts(reference=None)
        other = _facts(transaction_id="tx-2", reference=None, created_at=T0 + timedelta(seconds=30))
        issue = checker.check_duplicates(_context(facts, neighbours=(other,)))
        assert issue.related_ids == ("tx-2",)

    def test_missing_reference_does_not_match_a_reference(self, checker):
        facts = _facts(reference=None)
        other = _facts(transaction_id="tx-2")
        assert checker.check_duplicates(_context(facts, neighbours=(other,))) is None

    def test_self_is_ignored(self, checker):
        assert checker.check_duplicates(_context(neighbours=(_facts(),))) is None


class TestAuditAndAccountChecks:
    def test_completed_without_audit(self, checker):
        issue = checker.check_audit_correlation(_context(has_creation_audit=False))
        assert issue.check == IntegrityCheck.AUDIT_CORRELATION

    def test_pending_without_audit_is_fine(self, checker):
        context = _context(_facts(status="PENDING"), has_creation_audit=False)
        assert checker.check_audit_correlation(context) is None

    def test_completed_without_account(self, checker):
        issue = checker.check_account_reference(_context(account_exists=False))
        assert issue.check == IntegrityCheck.ACCOUNT_REFERENCE
        assert "ACC-1" in issue.description

    def test_failed_without_account_is_fine(self, checker):
        context = _context(_facts(status="FAILED"), account_exists=False)
        assert checker.check_account_reference(context) is None


class TestRunAllChecks:
    def test_clean_transaction(self, checker):
        assert checker.run_all_checks(context=_context()) == ()

    def test_checks_are_independent(self, checker):
        facts = _facts(amount_text="abc")
        other = _facts(transaction_id="tx-2", amount_text="abc")
        issues = checker.run_all_checks(context=_context(
            facts, neighbours=(other,), has_creation_audit=False, account_exists=False,
        ))

        assert tuple(i.check for i in issues) == IntegrityCheck.ALL
