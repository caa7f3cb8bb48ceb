"""
TransactionIntegrityChecker -- Pure engine for per-transaction integrity checks.

Architecture: recon_engines -- pure calculation, zero I/O, zero DB access.

Checks (independent; all run, none short-circuits):
    amountValidation   stored amount parses and is strictly positive
    duplicateCheck     another transaction with the same account, reference
                       and amount exists within the duplicate window; a
                       missing reference matches another missing one
    auditCorrelation   a COMPLETED transaction has a TRANSACTION_CREATED
                       audit entry
    accountReference   a COMPLETED transaction's account exists in the
                       balance store
"""

from __future__ import annotations

from recon_engines.integrity.types import IntegrityContext, TransactionFacts
from recon_engines.tracer import traced_engine
from recon_kernel.domain.currency import DEFAULT_CURRENCY, CurrencyInfo, parse_amount
from recon_kernel.domain.dtos import IntegrityCheck, IntegrityIssue
from recon_kernel.exceptions import InvalidAmountFormatError


def _amount_or_none(facts: TransactionFacts, currency: CurrencyInfo):
    try:
        return parse_amount(facts.amount_text, currency)
    except InvalidAmountFormatError:
        return None


class TransactionIntegrityChecker:
    """
    Pure engine for transaction integrity.

    Usage:
        checker = TransactionIntegrityChecker()
        issues = checker.run_all_checks(context=context)
    """

    def __init__(self, currency: CurrencyInfo = DEFAULT_CURRENCY):
        self._currency = currency

    def check_amount(self, context: IntegrityContext) -> IntegrityIssue | None:
        facts = context.transaction
        try:
            amount = parse_amount(facts.amount_text, self._currency)
        except InvalidAmountFormatError as exc:
            return IntegrityIssue(
                check=IntegrityCheck.AMOUNT_VALIDATION,
                description=f"Stored amount {facts.amount_text!r} is malformed: {exc.reason}",
            )
        if amount <= 0:
            return IntegrityIssue(
                check=IntegrityCheck.AMOUNT_VALIDATION,
                description=f"Stored amount {facts.amount_text!r} is not positive",
            )
        return None

    def check_duplicates(self, context: IntegrityContext) -> IntegrityIssue | None:
        facts = context.transaction
        amount = _amount_or_none(facts, self._currency)
        window = context.duplicate_window_seconds
        duplicates = []
        for other in context.neighbours:
            if other.transaction_id == facts.transaction_id:
                continue
            if other.account_id != facts.account_id or other.reference != facts.reference:
                continue
            if abs((other.created_at - facts.created_at).total_seconds()) > window:
                continue
            other_amount = _amount_or_none(other, self._currency)
            same_amount = (
                other_amount == amount
                if amount is not None and other_amount is not None
                else other.amount_text.strip() == facts.amount_text.strip()
            )
            if same_amount:
                duplicates.append(other.transaction_id)

        if not duplicates:
            return None
        return IntegrityIssue(
            check=IntegrityCheck.DUPLICATE_CHECK,
            description=(
                f"{len(duplicates)} transaction(s) with the same account, reference "
                f"and amount within {window}s"
            ),
            related_ids=tuple(sorted(duplicates)),
        )

    def check_audit_correlation(self, context: IntegrityContext) -> IntegrityIssue | None:
        if not context.transaction.is_completed or context.has_creation_audit:
            return None
        return IntegrityIssue(
            check=IntegrityCheck.AUDIT_CORRELATION,
            description="Completed transaction has no TRANSACTION_CREATED audit entry",
        )

    def check_account_reference(self, context: IntegrityContext) -> IntegrityIssue | None:
        if not context.transaction.is_completed or context.account_exists:
            return None
        return IntegrityIssue(
            check=IntegrityCheck.ACCOUNT_REFERENCE,
            description=(
                f"Completed transaction references account "
                f"{context.transaction.account_id} with no balance record"
            ),
        )

    @traced_engine(
        "transaction_integrity", "1.0",
        fingerprint_fields=("context",),
    )
    def run_all_checks(self, *, context: IntegrityContext) -> tuple[IntegrityIssue, ...]:
        """Every failing check, in the fixed check order."""
        results = (
            self.check_amount(context),
            self.check_duplicates(context),
            self.check_audit_correlation(context),
            self.check_account_reference(context),
        )
        return tuple(issue for issue in results if issue is not None)
