"""
ORM-Level Immutability Enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  Listeners registered here inspect attribute history and raise
ImmutabilityViolationError, which aborts the flush; the database is never
modified.

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
         |                                              ^
         v                                              |
    [before_delete] --> _check_*_delete() --------------+

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | Rule
-----------------------|---------------------------------------------------
AuditTrailEntry        | ALWAYS immutable, never deleted
BalanceCorrection      | ALWAYS immutable, never deleted
ReconciliationRecord   | ALWAYS immutable, never deleted
FinancialHealthCheck   | ALWAYS immutable, never deleted
DiscrepancyAlert       | Only OPEN -> RESOLVED with resolution fields; never deleted
Transaction            | amount / account_id frozen once persisted as COMPLETED

===============================================================================
USAGE
===============================================================================

    from recon_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; idempotent

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from recon_kernel.exceptions import ImmutabilityViolationError
from recon_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Fields an OPEN alert may change while being resolved
_ALERT_RESOLUTION_FIELDS = frozenset(
    {"status", "resolution_notes", "resolved_by", "resolved_at"}
)
_TRANSACTION_FROZEN_FIELDS = ("amount", "account_id")


def _blocked(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    # Column attributes only; relationship collections live on the child rows
    insp = inspect(target)
    return [
        prop.key
        for prop in insp.mapper.column_attrs
        if insp.attrs[prop.key].history.has_changes()
    ]


def _make_append_only_checks(entity_type: str):
    """Build (before_update, before_delete) listeners for an append-only model."""

    def _check_update(mapper, connection, target):
        changed = _changed_fields(target)
        if changed:
            raise _blocked(
                entity_type,
                target,
                "UPDATE",
                f"{entity_type} records are append-only (attempted to change '{changed[0]}')",
                field=changed[0],
            )

    def _check_delete(mapper, connection, target):
        raise _blocked(entity_type, target, "DELETE", f"{entity_type} records cannot be deleted")

    _check_update.__name__ = f"_check_{entity_type.lower()}_update"
    _check_delete.__name__ = f"_check_{entity_type.lower()}_delete"
    return _check_update, _check_delete


_audit_update, _audit_delete = _make_append_only_checks("AuditTrailEntry")
_correction_update, _correction_delete = _make_append_only_checks("BalanceCorrection")
_record_update, _record_delete = _make_append_only_checks("ReconciliationRecord")
_health_update, _health_delete = _make_append_only_checks("FinancialHealthCheck")


def _check_discrepancy_alert_update(mapper, connection, target):
    """
    Allow only the OPEN -> RESOLVED transition.

    The status must have been OPEN before this flush and be RESOLVED after
    it, and nothing except the resolution fields may change.
    """
    status_history = get_history(target, "status")
    was_open = (
        status_history.deleted[0] == "OPEN"
        if status_history.deleted
        else target.status == "OPEN"
    )

    for field in _changed_fields(target):
        if field not in _ALERT_RESOLUTION_FIELDS:
            raise _blocked(
                "DiscrepancyAlert",
                target,
                "UPDATE",
                f"Cannot modify field '{field}' on a discrepancy alert",
                field=field,
            )

    if not status_history.added:
        if not was_open:
            raise _blocked(
                "DiscrepancyAlert",
                target,
                "UPDATE",
                "Resolved discrepancy alerts are immutable",
            )
        raise _blocked(
            "DiscrepancyAlert",
            target,
            "UPDATE",
            "Resolution fields may only change together with the OPEN -> RESOLVED transition",
            field="status",
        )

    if not was_open or status_history.added[0] != "RESOLVED":
        raise _blocked(
            "DiscrepancyAlert",
            target,
            "UPDATE",
            "Discrepancy alerts may only transition OPEN -> RESOLVED",
            field="status",
        )

    notes = target.resolution_notes
    if notes is None or not notes.strip():
        raise _blocked(
            "DiscrepancyAlert",
            target,
            "UPDATE",
            "Resolving a discrepancy alert requires resolution notes",
            field="resolution_notes",
        )


def _check_discrepancy_alert_delete(mapper, connection, target):
    raise _blocked("DiscrepancyAlert", target, "DELETE", "Discrepancy alerts cannot be deleted")


def _check_transaction_update(mapper, connection, target):
    """Freeze amount and account once the persisted status is COMPLETED."""
    status_history = get_history(target, "status")
    if status_history.deleted:
        was_completed = status_history.deleted[0] == "COMPLETED"
    else:
        was_completed = target.status == "COMPLETED"

    if not was_completed:
        return

    for field in _TRANSACTION_FROZEN_FIELDS:
        if get_history(target, field).has_changes():
            raise _blocked(
                "Transaction",
                target,
                "UPDATE",
                f"Cannot modify '{field}' of a completed transaction",
                field=field,
            )


def _listener_table():
    from recon_kernel.models import (
        AuditTrailEntry,
        BalanceCorrection,
        DiscrepancyAlert,
        FinancialHealthCheck,
        ReconciliationRecord,
        Transaction,
    )

    return [
        (AuditTrailEntry, "before_update", _audit_update),
        (AuditTrailEntry, "before_delete", _audit_delete),
        (BalanceCorrection, "before_update", _correction_update),
        (BalanceCorrection, "before_delete", _correction_delete),
        (ReconciliationRecord, "before_update", _record_update),
        (ReconciliationRecord, "before_delete", _record_delete),
        (FinancialHealthCheck, "before_update", _health_update),
        (FinancialHealthCheck, "before_delete", _health_delete),
        (DiscrepancyAlert, "before_update", _check_discrepancy_alert_update),
        (DiscrepancyAlert, "before_delete", _check_discrepancy_alert_delete),
        (Transaction, "before_update", _check_transaction_update),
    ]


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement listeners.

    Idempotent: listeners already registered are not added twice.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """Remove immutability listeners.  FOR TESTING ONLY."""
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
