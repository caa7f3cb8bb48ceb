"""
Module: recon_kernel.models.audit_trail
Responsibility: ORM persistence for the tamper-evident, append-only audit
    trail of every significant financial event.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listener).
    - seq is strictly monotonic, allocated by SequenceService.
    - hash = H(entity_type | entity_id | event_type | payload_hash |
      prev_hash or GENESIS).  Validated by AuditorService.validate_chain().

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a mismatch.

Audit relevance:
    This IS the audit trail.  Transaction creation, balance corrections,
    reconciliation runs and discrepancy resolutions each produce one row.
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from recon_kernel.db.base import Base
from recon_kernel.domain.audit_payloads import AuditEventType


class AuditTrailEntry(Base):
    """
    Audit trail row with hash chain for tamper evidence.

    Non-goals:
        - This model does NOT check hash correctness at INSERT time;
          that is the responsibility of AuditorService.
    """

    __tablename__ = "audit_trail"

    __table_args__ = (
        Index("idx_audit_trail_entity", "entity_type", "entity_id"),
        Index("idx_audit_trail_event_type", "event_type"),
        Index("idx_audit_trail_occurred", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
    )

    event_type: Mapped[AuditEventType] = mapped_column(
        String(40),
        nullable=False,
    )

    # "Transaction", "AccountBalance", "ReconciliationRecord", "DiscrepancyAlert"
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    # Encoded payload variant (see domain/audit_payloads.py)
    changes: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )

    # None for system-generated events
    actor_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    payload_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    # Null for the first entry
    prev_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditTrailEntry #{self.seq} {self.event_type} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
