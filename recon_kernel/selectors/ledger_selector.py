"""
Module: recon_kernel.selectors.ledger_selector
Responsibility: Read-only queries over the transaction ledger and the
    account balance store.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Time windows are half-open: ``start <= created_at < end``.
    - Results are ordered by created_at, then id, so repeated reads of the
      same data produce the same order.
"""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select

from recon_kernel.models.account_balance import AccountBalance
from recon_kernel.models.transaction import Transaction, TransactionStatus
from recon_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    """Selector for transactions and stored balances."""

    # Transactions

    def get_transaction(self, transaction_id: UUID) -> Transaction | None:
        return self.session.get(Transaction, transaction_id)

    def transactions_between(
        self,
        start: datetime,
        end: datetime,
        account_id: str | None = None,
    ) -> list[Transaction]:
        """Every transaction (any status) created in ``[start, end)``."""
        query = select(Transaction).where(
            Transaction.created_at >= start,
            Transaction.created_at < end,
        )
        if account_id is not None:
            query = query.where(Transaction.account_id == account_id)
        return list(
            self.session.execute(
                query.order_by(Transaction.created_at, Transaction.id)
            ).scalars().all()
        )

    def accounts_with_transactions_between(self, start: datetime, end: datetime) -> set[str]:
        rows = self.session.execute(
            select(Transaction.account_id)
            .where(
                Transaction.created_at >= start,
                Transaction.created_at < end,
            )
            .distinct()
        ).scalars().all()
        return set(rows)

    def completed_transactions(
        self,
        account_id: str,
        after: datetime | None = None,
        before: datetime | None = None,
        include_after: bool = False,
    ) -> list[Transaction]:
        """
        COMPLETED transactions on ``account_id``.

        ``after`` is exclusive unless ``include_after``; ``before`` is
        exclusive.  Either bound may be None (unbounded).
        """
        query = select(Transaction).where(
            Transaction.account_id == account_id,
            Transaction.status == TransactionStatus.COMPLETED.value,
        )
        if after is not None:
            query = query.where(
                Transaction.created_at >= after if include_after else Transaction.created_at > after
            )
        if before is not None:
            query = query.where(Transaction.created_at < before)
        return list(
            self.session.execute(
                query.order_by(Transaction.created_at, Transaction.id)
            ).scalars().all()
        )

    def same_reference_neighbours(
        self,
        transaction: Transaction,
        window_seconds: int,
    ) -> list[Transaction]:
        """
        Other transactions on the same account with the same reference
        created within ``window_seconds`` either side.  A missing reference
        matches other missing references.
        """
        window = timedelta(seconds=window_seconds)
        return list(
            self.session.execute(
                select(Transaction)
                .where(
                    Transaction.account_id == transaction.account_id,
                    (
                        Transaction.reference.is_(None)
                        if transaction.reference is None
                        else Transaction.reference == transaction.reference
                    ),
                    Transaction.id != transaction.id,
                    Transaction.created_at >= transaction.created_at - window,
                    Transaction.created_at <= transaction.created_at + window,
                )
                .order_by(Transaction.created_at, Transaction.id)
            ).scalars().all()
        )

    # Balances

    def get_balance(self, account_id: str) -> AccountBalance | None:
        return self.session.execute(
            select(AccountBalance).where(AccountBalance.account_id == account_id)
        ).scalar_one_or_none()

    def get_balance_for_update(self, account_id: str) -> AccountBalance | None:
        """Load a balance row with a row lock (no-op on SQLite)."""
        return self.session.execute(
            select(AccountBalance)
            .where(AccountBalance.account_id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_balance_for_share(self, account_id: str) -> AccountBalance | None:
        """Load a balance row under a shared lock; writers wait (no-op on SQLite)."""
        return self.session.execute(
            select(AccountBalance)
            .where(AccountBalance.account_id == account_id)
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def nonzero_balance_accounts(self) -> set[str]:
        rows = self.session.execute(
            select(AccountBalance.account_id).where(AccountBalance.current_balance != 0)
        ).scalars().all()
        return set(rows)

    def negative_balances(self) -> list[AccountBalance]:
        return list(
            self.session.execute(
                select(AccountBalance)
                .where(AccountBalance.current_balance < 0)
                .order_by(AccountBalance.account_id)
            ).scalars().all()
        )

    def account_exists(self, account_id: str) -> bool:
        return self.get_balance(account_id) is not None
