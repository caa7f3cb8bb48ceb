"""
recon_services.integrity_service -- Per-transaction integrity verification.

Responsibility:
    Loads one transaction and the surrounding facts its checks need
    (same-reference neighbours, the creation audit entry, the balance
    record) and hands them to the pure TransactionIntegrityChecker.

Architecture position:
    Services -- imperative shell over ``recon_engines.integrity``.

Invariants enforced:
    - An unknown transaction id is a hard failure
      (TransactionNotFoundError), never a validity issue.
    - Every check runs; issues accumulate without short-circuiting.
    - Read-only: verification never writes.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from recon_config.bridges import build_currency
from recon_config.schema import ReconciliationConfig
from recon_engines.integrity import IntegrityContext, TransactionFacts, TransactionIntegrityChecker
from recon_kernel.domain.audit_payloads import AuditEventType, TransactionCreatedPayload
from recon_kernel.domain.dtos import VerificationResult
from recon_kernel.exceptions import TransactionNotFoundError
from recon_kernel.logging_config import get_logger
from recon_kernel.models.transaction import Transaction
from recon_kernel.selectors.ledger_selector import LedgerSelector
from recon_kernel.services.auditor_service import AuditorService

logger = get_logger("services.integrity")


def _enum_value(value) -> str:
    return str(getattr(value, "value", value))


def _facts(transaction: Transaction) -> TransactionFacts:
    return TransactionFacts(
        transaction_id=str(transaction.id),
        account_id=transaction.account_id,
        amount_text=transaction.amount,
        transaction_type=_enum_value(transaction.transaction_type),
        status=_enum_value(transaction.status),
        reference=transaction.reference,
        created_at=transaction.created_at,
    )


class IntegrityService:
    """
    Verifies stored transactions.

    Usage:
        result = IntegrityService(session, config).verify(transaction_id)
        if not result.is_valid:
            ...
    """

    def __init__(self, session: Session, config: ReconciliationConfig):
        self._session = session
        self._config = config
        self._ledger = LedgerSelector(session)
        self._auditor = AuditorService(session)
        self._checker = TransactionIntegrityChecker(build_currency(config))

    def get_transaction(self, transaction_id: UUID | str) -> Transaction:
        """
        Load a transaction by id.

        Raises:
            TransactionNotFoundError: unknown or malformed id.
        """
        if isinstance(transaction_id, UUID):
            key = transaction_id
        else:
            try:
                key = UUID(str(transaction_id).strip())
            except ValueError as exc:
                raise TransactionNotFoundError(str(transaction_id)) from exc
        transaction = self._ledger.get_transaction(key)
        if transaction is None:
            raise TransactionNotFoundError(str(transaction_id))
        return transaction

    def verify(self, transaction_id: UUID | str) -> VerificationResult:
        transaction = self.get_transaction(transaction_id)
        return self.verify_transaction(transaction)

    def verify_transaction(self, transaction: Transaction) -> VerificationResult:
        """Run every check against an already-loaded transaction."""
        window = self._config.integrity.duplicate_window_seconds
        context = IntegrityContext(
            transaction=_facts(transaction),
            neighbours=tuple(
                _facts(other)
                for other in self._ledger.same_reference_neighbours(transaction, window)
            ),
            has_creation_audit=self._auditor.has_entry_for(
                AuditEventType.TRANSACTION_CREATED,
                TransactionCreatedPayload.entity_type,
                transaction.id,
            ),
            account_exists=self._ledger.account_exists(transaction.account_id),
            duplicate_window_seconds=window,
        )
        issues = self._checker.run_all_checks(context=context)
        result = VerificationResult(transaction_id=str(transaction.id), issues=issues)

        if result.is_valid:
            logger.debug(
                "transaction_verified",
                extra={"transaction_id": result.transaction_id},
            )
        else:
            logger.warning(
                "transaction_integrity_issues",
                extra={
                    "transaction_id": result.transaction_id,
                    "failed_checks": list(result.failed_checks),
                },
            )
        return result
