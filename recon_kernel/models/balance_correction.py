"""
Module: recon_kernel.models.balance_correction
Responsibility: ORM persistence for administratively applied balance fixes.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Immutable once created (ORM listener).
    - difference == corrected_balance - original_balance.
    - correction_type is CREDIT_ADJUSTMENT when difference >= 0, else
      DEBIT_ADJUSTMENT.
    - reason is non-empty (validated by BalanceCorrectionService).

Audit relevance:
    Written in the same database transaction as the balance update and the
    BALANCE_CORRECTION audit entry; readers never observe one without the
    others.  ``live_balance_before`` keeps the value actually replaced, which
    can differ from the caller's observed ``original_balance`` under
    concurrent corrections.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from recon_kernel.db.base import Base


class CorrectionType(str, Enum):
    CREDIT_ADJUSTMENT = "CREDIT_ADJUSTMENT"
    DEBIT_ADJUSTMENT = "DEBIT_ADJUSTMENT"

    @classmethod
    def for_difference(cls, difference: Decimal) -> "CorrectionType":
        return cls.CREDIT_ADJUSTMENT if difference >= 0 else cls.DEBIT_ADJUSTMENT


class BalanceCorrection(Base):
    """Record of one manual or policy-driven balance fix."""

    __tablename__ = "balance_corrections"

    __table_args__ = (
        Index("idx_correction_account_created", "account_id", "created_at"),
        Index("idx_correction_created", "created_at"),
    )

    # Reference of the ledger adjustment this correction stands for
    adjustment_reference: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        unique=True,
    )

    account_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    # Balance the caller observed (advisory compare-and-swap input)
    original_balance: Mapped[Decimal] = mapped_column(nullable=False)

    corrected_balance: Mapped[Decimal] = mapped_column(nullable=False)

    # corrected - original
    difference: Mapped[Decimal] = mapped_column(nullable=False)

    # Live stored balance replaced by this correction
    live_balance_before: Mapped[Decimal] = mapped_column(nullable=False)

    correction_type: Mapped[CorrectionType] = mapped_column(
        String(20),
        nullable=False,
    )

    reason: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    evidence: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    actor_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<BalanceCorrection {self.adjustment_reference} {self.account_id}: "
            f"{self.original_balance} -> {self.corrected_balance}>"
        )
