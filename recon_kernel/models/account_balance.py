"""
Module: recon_kernel.models.account_balance
Responsibility: ORM persistence for the materialized balance of each account.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - account_id is unique (uq_account_balance_account).
    - current_balance == opening_balance + net COMPLETED transactions
      + applied corrections.  Verified by the daily reconciliation pass,
      not by a constraint.
    - Mutated by this engine only through BalanceCorrectionService.

Audit relevance:
    Every change this engine makes to current_balance is paired with a
    BalanceCorrection row and a BALANCE_CORRECTION audit entry.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from recon_kernel.db.base import Base


class AccountBalance(Base):
    """Current materialized balance for one account."""

    __tablename__ = "account_balances"

    __table_args__ = (
        UniqueConstraint("account_id", name="uq_account_balance_account"),
    )

    account_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    current_balance: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    # Balance carried in when the account was opened, before any ledger row
    opening_balance: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="BDT",
    )

    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AccountBalance {self.account_id}: {self.current_balance} {self.currency}>"

    @property
    def is_negative(self) -> bool:
        return self.current_balance < 0
