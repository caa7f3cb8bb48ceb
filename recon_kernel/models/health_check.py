"""
Module: recon_kernel.models.health_check
Responsibility: ORM persistence for periodic financial health snapshots.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Immutable once created; every monitor call appends exactly one row.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from recon_kernel.db.base import Base


class HealthStatus(str, Enum):
    HEALTHY = "HEALTHY"
    ISSUES_DETECTED = "ISSUES_DETECTED"


class FinancialHealthCheck(Base):
    """
    Snapshot produced by the health monitor.

    ``metrics`` holds ``outstanding_discrepancies`` (count of OPEN alerts)
    and ``balance_anomalies`` (list of {account_id, balance, type}).
    ``alerts`` lists the {type, severity, message} entries raised.
    """

    __tablename__ = "financial_health_checks"

    __table_args__ = (
        Index("idx_health_checked_at", "checked_at"),
    )

    status: Mapped[HealthStatus] = mapped_column(
        String(20),
        nullable=False,
    )

    metrics: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )

    alerts: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    checked_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<FinancialHealthCheck {self.checked_at}: {self.status}>"

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY
