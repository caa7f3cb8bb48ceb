"""
Module: recon_kernel.models.transaction
Responsibility: ORM persistence for the transaction ledger -- one row per
    money movement recorded by the booking/payment workflow.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Once status is COMPLETED, amount and account_id never change
      (ORM listener in db/immutability.py).
    - The engine never writes this table during reconciliation, verification
      or correction; rows arrive from the external booking workflow.

Failure modes:
    - ImmutabilityViolationError on modification of a COMPLETED row's
      amount or account.
    - A malformed stored ``amount`` is not a load error: it is reported as
      an ``amountValidation`` issue by the integrity verifier and skipped by
      the reconciliation pass.

Audit relevance:
    COMPLETED transactions are expected to carry a TRANSACTION_CREATED
    audit entry.  Its absence signals a write that bypassed the audit path.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from recon_kernel.db.base import Base


class TransactionType(str, Enum):
    """Direction of a money movement."""

    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class TransactionStatus(str, Enum):
    """Lifecycle status of a transaction.  Only COMPLETED rows move balances."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Transaction(Base):
    """
    One money movement on one account.

    Contract:
        ``amount`` is the amount text exactly as recorded upstream (for
        example ``"1000.00"`` or ``"৳1,000.00"``).  It is always positive;
        direction comes from ``transaction_type``.  Consumers parse it
        through ``recon_kernel.domain.currency.parse_amount``.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transaction_account_created", "account_id", "created_at"),
        Index("idx_transaction_created", "created_at"),
        Index("idx_transaction_reference", "account_id", "reference"),
    )

    account_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    amount: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(10),
        nullable=False,
    )

    # Free-text reference from the booking workflow (booking number, receipt)
    reference: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    status: Mapped[TransactionStatus] = mapped_column(
        String(20),
        default=TransactionStatus.PENDING.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.id} {self.transaction_type} {self.amount} "
            f"on {self.account_id} [{self.status}]>"
        )

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED

    @property
    def is_credit(self) -> bool:
        return self.transaction_type == TransactionType.CREDIT
