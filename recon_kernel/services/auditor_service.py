"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Creates immutable, hash-chained audit trail entries for every significant
    financial event and validates the chain for tamper detection.

Architecture position:
    Kernel > Services -- imperative shell, called by the reconciliation,
    correction and resolution services, and offered to the booking
    workflow through ``record_transaction_created()``.

Invariants enforced:
    - Sequence monotonicity via SequenceService (never raw SQL max+1).
    - Chain integrity: ``hash = H(entity_type | entity_id | event_type |
      payload_hash | prev_hash)``; every entry links to its predecessor.
    - Append-only: entries are never modified or deleted (ORM listener).
    - Payloads are typed variants (domain/audit_payloads.py), encoded to a
      dict only here, at the storage boundary.

Failure modes:
    - AuditChainBrokenError: a recomputed payload hash or entry hash does
      not match, or prev_hash does not match the predecessor's hash.

Audit relevance:
    This IS the audit service.  All entries flow through ``_append()``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from recon_kernel.domain.audit_payloads import (
    AuditPayload,
    DiscrepancyResolvedPayload,
    TransactionCreatedPayload,
    decode_payload,
    encode_payload,
)
from recon_kernel.domain.clock import Clock, SystemClock
from recon_kernel.exceptions import AuditChainBrokenError
from recon_kernel.logging_config import get_logger
from recon_kernel.models.audit_trail import AuditEventType, AuditTrailEntry
from recon_kernel.models.transaction import Transaction
from recon_kernel.services.sequence_service import SequenceService
from recon_kernel.utils.hashing import hash_audit_entry, hash_payload

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    event_type: str
    occurred_at: datetime
    actor_id: str | None
    payload: AuditPayload
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit entries for one entity, in chain order."""

    entity_type: str
    entity_id: str
    entries: tuple[AuditTraceEntry, ...]

    @property
    def last_event_type(self) -> str | None:
        return self.entries[-1].event_type if self.entries else None


class AuditorService:
    """
    Service for creating and validating tamper-evident audit entries.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        """Hash of the most recent entry; None when the trail is empty."""
        last_entry = self._session.execute(
            select(AuditTrailEntry)
            .order_by(AuditTrailEntry.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

        return last_entry.hash if last_entry else None

    def _append(self, payload: AuditPayload, actor_id: str | None) -> AuditTrailEntry:
        """
        Append one entry with hash chain linkage.

        Postconditions:
            - A new AuditTrailEntry is flushed with a monotonically
              increasing ``seq`` and a valid link to its predecessor.
        """
        # The counter row lock serialises concurrent writers before the
        # predecessor hash is read.
        seq = self._sequence_service.next_value(SequenceService.AUDIT_TRAIL)
        prev_hash = self._get_last_hash()

        changes = encode_payload(payload)
        computed_payload_hash = hash_payload(changes)
        event_type = payload.event_type.value
        entity_id = payload.entity_id()

        entry_hash = hash_audit_entry(
            entity_type=payload.entity_type,
            entity_id=entity_id,
            event_type=event_type,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        entry = AuditTrailEntry(
            seq=seq,
            event_type=event_type,
            entity_type=payload.entity_type,
            entity_id=entity_id,
            changes=changes,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self._session.add(entry)
        self._session.flush()

        logger.info(
            "audit_entry_created",
            extra={
                "event_type": event_type,
                "entity_type": payload.entity_type,
                "entity_id": entity_id,
                "seq": seq,
            },
        )
        return entry

    # Domain-specific recording methods

    def record(self, payload: AuditPayload, actor_id: str | None = None) -> AuditTrailEntry:
        """Record any typed payload."""
        return self._append(payload, actor_id)

    def record_transaction_created(
        self,
        transaction: Transaction,
        actor_id: str | None = None,
    ) -> AuditTrailEntry:
        """Audit path for the booking workflow when it writes a transaction."""
        payload = TransactionCreatedPayload(
            transaction_id=str(transaction.id),
            account_id=transaction.account_id,
            amount=transaction.amount,
            transaction_type=str(getattr(transaction.transaction_type, "value", transaction.transaction_type)),
            status=str(getattr(transaction.status, "value", transaction.status)),
            reference=transaction.reference,
        )
        return self._append(payload, actor_id)

    def record_discrepancy_resolved(
        self,
        alert_id: str,
        account_id: str,
        notes: str,
        actor_id: str,
    ) -> AuditTrailEntry:
        payload = DiscrepancyResolvedPayload(
            alert_id=alert_id,
            account_id=account_id,
            notes=notes,
        )
        return self._append(payload, actor_id)

    # Validation

    def validate_chain(self) -> bool:
        """
        Validate the entire audit trail.

        Postconditions:
            - Returns True only if every entry's payload hash and hash match
              their recomputed values and every prev_hash matches the
              predecessor's hash.

        Raises:
            AuditChainBrokenError: at the first mismatch.
        """
        entries = self._session.execute(
            select(AuditTrailEntry).order_by(AuditTrailEntry.seq)
        ).scalars().all()

        previous_hash: str | None = None
        for entry in entries:
            if entry.prev_hash != previous_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_entry_id": str(entry.id), "seq": entry.seq, "check": "linkage"},
                )
                raise AuditChainBrokenError(
                    str(entry.id),
                    previous_hash or "None",
                    entry.prev_hash or "None",
                )

            recomputed_payload_hash = hash_payload(entry.changes)
            if recomputed_payload_hash != entry.payload_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_entry_id": str(entry.id), "seq": entry.seq, "check": "payload"},
                )
                raise AuditChainBrokenError(
                    str(entry.id),
                    recomputed_payload_hash,
                    entry.payload_hash,
                )

            expected_hash = hash_audit_entry(
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                event_type=entry.event_type,
                payload_hash=entry.payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_entry_id": str(entry.id), "seq": entry.seq, "check": "hash"},
                )
                raise AuditChainBrokenError(
                    str(entry.id),
                    expected_hash,
                    entry.hash,
                )
            previous_hash = entry.hash

        logger.info(
            "audit_chain_valid",
            extra={"entry_count": len(entries)},
        )
        return True

    # Trace and query methods

    def get_trace(self, entity_type: str, entity_id: str) -> AuditTrace:
        """All audit entries for one entity, decoded, in chain order."""
        entries = self._session.execute(
            select(AuditTrailEntry)
            .where(
                AuditTrailEntry.entity_type == entity_type,
                AuditTrailEntry.entity_id == str(entity_id),
            )
            .order_by(AuditTrailEntry.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=str(entity_id),
            entries=tuple(
                AuditTraceEntry(
                    seq=entry.seq,
                    event_type=entry.event_type,
                    occurred_at=entry.occurred_at,
                    actor_id=entry.actor_id,
                    payload=decode_payload(entry.event_type, entry.changes, entry.entity_id),
                    hash=entry.hash,
                )
                for entry in entries
            ),
        )

    def get_recent_entries(
        self,
        limit: int = 100,
        event_type: AuditEventType | None = None,
    ) -> list[AuditTrailEntry]:
        """Most recent entries first, optionally filtered by event type."""
        query = select(AuditTrailEntry)
        if event_type is not None:
            query = query.where(AuditTrailEntry.event_type == event_type.value)
        result = self._session.execute(
            query.order_by(AuditTrailEntry.seq.desc()).limit(limit)
        )
        return list(result.scalars().all())

    def has_entry_for(self, event_type: AuditEventType, entity_type: str, entity_id: Any) -> bool:
        """True if at least one entry of ``event_type`` exists for the entity."""
        found = self._session.execute(
            select(AuditTrailEntry.id)
            .where(
                AuditTrailEntry.event_type == event_type.value,
                AuditTrailEntry.entity_type == entity_type,
                AuditTrailEntry.entity_id == str(entity_id),
            )
            .limit(1)
        ).scalar_one_or_none()
        return found is not None
