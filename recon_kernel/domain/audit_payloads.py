"""
Audit payloads -- typed variants for each audit event type.

Responsibility:
    Defines the closed set of audit event types and one frozen dataclass
    per type.  Services build a typed payload; it is encoded to a plain dict
    only at the storage boundary (``AuditTrailEntry.changes``) and decoded
    back when read.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O, no ORM.

Invariants enforced:
    - Every event type has exactly one payload class (``PAYLOAD_TYPES``).
    - Monetary fields are canonical 2-place strings in the encoded form.
    - Decoding an unknown event type or a payload missing a field fails
      loudly (KeyError / ValueError); stored payloads are never guessed at.
"""

from __future__ import annotations

from dataclasses import MISSING, asdict, dataclass, fields
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar


class AuditEventType(str, Enum):
    """Closed set of auditable events."""

    TRANSACTION_CREATED = "TRANSACTION_CREATED"
    BALANCE_CORRECTION = "BALANCE_CORRECTION"
    RECONCILIATION_RUN = "RECONCILIATION_RUN"
    DISCREPANCY_RESOLVED = "DISCREPANCY_RESOLVED"


def _money(value: Decimal | str) -> str:
    return str(Decimal(value).quantize(Decimal("0.01")))


@dataclass(frozen=True)
class TransactionCreatedPayload:
    """A booking workflow transaction entered the ledger."""

    event_type: ClassVar[AuditEventType] = AuditEventType.TRANSACTION_CREATED
    entity_type: ClassVar[str] = "Transaction"

    transaction_id: str
    account_id: str
    amount: str
    transaction_type: str
    status: str
    reference: str | None = None

    def entity_id(self) -> str:
        return self.transaction_id

    def to_changes(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BalanceCorrectionPayload:
    """
    A stored balance was replaced.

    Encoded with ``from``/``to`` keys: the balance the caller observed and
    the balance applied.  ``stale_observation`` is True when the live value
    differed from ``from_balance`` at apply time.
    """

    event_type: ClassVar[AuditEventType] = AuditEventType.BALANCE_CORRECTION
    entity_type: ClassVar[str] = "AccountBalance"

    account_id: str
    from_balance: Decimal
    to_balance: Decimal
    difference: Decimal
    live_balance_before: Decimal
    correction_id: str
    adjustment_reference: str
    correction_type: str
    reason: str
    stale_observation: bool = False

    def entity_id(self) -> str:
        return self.account_id

    def to_changes(self) -> dict[str, Any]:
        return {
            "from": _money(self.from_balance),
            "to": _money(self.to_balance),
            "difference": _money(self.difference),
            "live_balance_before": _money(self.live_balance_before),
            "correction_id": self.correction_id,
            "adjustment_reference": self.adjustment_reference,
            "correction_type": self.correction_type,
            "reason": self.reason,
            "stale_observation": self.stale_observation,
        }

    @classmethod
    def from_changes(cls, changes: dict[str, Any], entity_id: str) -> BalanceCorrectionPayload:
        return cls(
            account_id=entity_id,
            from_balance=Decimal(changes["from"]),
            to_balance=Decimal(changes["to"]),
            difference=Decimal(changes["difference"]),
            live_balance_before=Decimal(changes["live_balance_before"]),
            correction_id=changes["correction_id"],
            adjustment_reference=changes["adjustment_reference"],
            correction_type=changes["correction_type"],
            reason=changes["reason"],
            stale_observation=bool(changes["stale_observation"]),
        )


@dataclass(frozen=True)
class ReconciliationRunPayload:
    """A reconciliation pass completed and its record was written."""

    event_type: ClassVar[AuditEventType] = AuditEventType.RECONCILIATION_RUN
    entity_type: ClassVar[str] = "ReconciliationRecord"

    reconciliation_id: str
    reconciliation_date: str
    status: str
    accounts_checked: int
    discrepancy_count: int
    # None when integrity verification was not part of the pass
    integrity_issue_count: int | None = None

    def entity_id(self) -> str:
        return self.reconciliation_id

    def to_changes(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DiscrepancyResolvedPayload:
    """An OPEN discrepancy alert was resolved by an operator."""

    event_type: ClassVar[AuditEventType] = AuditEventType.DISCREPANCY_RESOLVED
    entity_type: ClassVar[str] = "DiscrepancyAlert"

    alert_id: str
    account_id: str
    notes: str
    from_status: str = "OPEN"
    to_status: str = "RESOLVED"

    def entity_id(self) -> str:
        return self.alert_id

    def to_changes(self) -> dict[str, Any]:
        return asdict(self)


AuditPayload = (
    TransactionCreatedPayload
    | BalanceCorrectionPayload
    | ReconciliationRunPayload
    | DiscrepancyResolvedPayload
)

PAYLOAD_TYPES: dict[AuditEventType, type] = {
    AuditEventType.TRANSACTION_CREATED: TransactionCreatedPayload,
    AuditEventType.BALANCE_CORRECTION: BalanceCorrectionPayload,
    AuditEventType.RECONCILIATION_RUN: ReconciliationRunPayload,
    AuditEventType.DISCREPANCY_RESOLVED: DiscrepancyResolvedPayload,
}


def encode_payload(payload: AuditPayload) -> dict[str, Any]:
    """Encode a typed payload to the dict stored in ``changes``."""
    return payload.to_changes()


def decode_payload(event_type: str, changes: dict[str, Any], entity_id: str) -> AuditPayload:
    """
    Decode stored ``changes`` back into the typed variant for ``event_type``.

    Raises:
        ValueError: unknown event type.
        KeyError: a required field is missing.
    """
    payload_cls = PAYLOAD_TYPES[AuditEventType(event_type)]
    if hasattr(payload_cls, "from_changes"):
        return payload_cls.from_changes(changes, entity_id)
    names = {f.name for f in fields(payload_cls)}
    missing = [
        f.name for f in fields(payload_cls)
        if f.name not in changes and f.default is MISSING and f.default_factory is MISSING
    ]
    if missing:
        raise KeyError(f"{event_type} payload missing fields: {', '.join(missing)}")
    return payload_cls(**{k: v for k, v in changes.items() if k in names})
