"""
Module: recon_kernel.models.reconciliation
Responsibility: ORM persistence for reconciliation pass output -- one
    ReconciliationRecord per pass and one DiscrepancyAlert per mismatched
    account.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ReconciliationRecord is immutable after creation.  A re-run for the
      same date appends a new record; history keeps every run.
    - DiscrepancyAlert.difference == actual_amount - expected_amount.
    - DiscrepancyAlert may only transition OPEN -> RESOLVED, with
      non-empty resolution notes.  Alerts are never deleted.

Failure modes:
    - ImmutabilityViolationError on UPDATE/DELETE of a record, or on any
      alert change other than the resolution transition.

Audit relevance:
    Each pass writes a RECONCILIATION_RUN audit entry referencing the
    record id; each resolution writes DISCREPANCY_RESOLVED.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from recon_kernel.db.base import Base, UUIDString


class ReconciliationStatus(str, Enum):
    RECONCILED = "RECONCILED"
    DISCREPANCY_FOUND = "DISCREPANCY_FOUND"


class DiscrepancySeverity(str, Enum):
    """Magnitude band of |difference|; thresholds are configuration."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class DiscrepancyStatus(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class ReconciliationRecord(Base):
    """
    Output of one reconciliation pass for one target date.

    Contract:
        ``expected_balances`` and ``actual_balances`` map account id to the
        canonical 2-place amount string.  ``discrepancies`` is the ordered
        list (by account id) of mismatches found, each a dict with
        account_id, expected, actual, difference and severity.
    """

    __tablename__ = "reconciliation_records"

    __table_args__ = (
        Index("idx_reconciliation_date", "reconciliation_date"),
        Index("idx_reconciliation_created", "created_at"),
    )

    reconciliation_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    status: Mapped[ReconciliationStatus] = mapped_column(
        String(20),
        nullable=False,
    )

    expected_balances: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    actual_balances: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    discrepancies: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    # Who triggered the pass (None for the scheduler)
    run_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    alerts: Mapped[list["DiscrepancyAlert"]] = relationship(
        back_populates="reconciliation",
        order_by="DiscrepancyAlert.account_id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ReconciliationRecord {self.reconciliation_date}: {self.status}>"

    @property
    def is_reconciled(self) -> bool:
        return self.status == ReconciliationStatus.RECONCILED


class DiscrepancyAlert(Base):
    """One detected mismatch between expected and actual balance."""

    __tablename__ = "discrepancy_alerts"

    __table_args__ = (
        Index("idx_discrepancy_status", "status"),
        Index("idx_discrepancy_account", "account_id"),
        Index("idx_discrepancy_created", "created_at"),
    )

    reconciliation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("reconciliation_records.id"),
        nullable=False,
    )

    account_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    expected_amount: Mapped[Decimal] = mapped_column(nullable=False)

    actual_amount: Mapped[Decimal] = mapped_column(nullable=False)

    # actual - expected
    difference: Mapped[Decimal] = mapped_column(nullable=False)

    severity: Mapped[DiscrepancySeverity] = mapped_column(
        String(10),
        nullable=False,
    )

    status: Mapped[DiscrepancyStatus] = mapped_column(
        String(10),
        nullable=False,
        default=DiscrepancyStatus.OPEN.value,
    )

    resolution_notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    resolved_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    resolved_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    reconciliation: Mapped[ReconciliationRecord] = relationship(
        back_populates="alerts",
    )

    def __repr__(self) -> str:
        return (
            f"<DiscrepancyAlert {self.account_id} diff={self.difference} "
            f"{self.severity} [{self.status}]>"
        )

    @property
    def is_open(self) -> bool:
        return self.status == DiscrepancyStatus.OPEN
