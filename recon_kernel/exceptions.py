"""
Typed Exception Hierarchy for the Reconciliation Kernel.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes
(not just a message string).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReconKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountFormatError
    |   +-- ReasonRequiredError
    |   +-- ResolutionNotesRequiredError
    |   +-- InvalidDateRangeError
    |   +-- InvalidPaginationError
    |   +-- UnsupportedFormatError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- DiscrepancyNotFoundError
    |
    +-- StateError
    |   +-- DiscrepancyAlreadyResolvedError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityViolationError
    +-- ConfigurationError
    +-- UnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|------------------------------------
Validation      | INVALID_AMOUNT_FORMAT         | Malformed currency input
                | REASON_REQUIRED               | Correction without justification
                | RESOLUTION_NOTES_REQUIRED     | Resolving an alert without notes
                | INVALID_DATE_RANGE            | Unparseable or inverted date bounds
                | INVALID_PAGINATION            | page < 1 or limit out of range
                | UNSUPPORTED_FORMAT            | Unknown report encoding
----------------|-------------------------------|------------------------------------
Not found       | ACCOUNT_NOT_FOUND             | No balance row for the account
                | TRANSACTION_NOT_FOUND         | Transaction ID doesn't exist
                | DISCREPANCY_NOT_FOUND         | Alert ID doesn't exist
----------------|-------------------------------|------------------------------------
State           | DISCREPANCY_ALREADY_RESOLVED  | Alert is not OPEN
----------------|-------------------------------|------------------------------------
Audit           | AUDIT_CHAIN_BROKEN            | Hash chain validation failed
Immutability    | IMMUTABILITY_VIOLATION        | Modifying an append-only record
Configuration   | INVALID_CONFIGURATION         | Policy file fails validation
Store           | STORE_UNAVAILABLE             | Database unreachable (retryable)

===============================================================================
PROPAGATION
===============================================================================

Validation errors are raised before any write.  Not-found errors abort with
no side effect.  UnavailableError is never retried here: blind retry of a
balance correction could double-apply it without an upstream idempotency
key.  Discrepancies are data, not errors.
"""


class ReconKernelError(Exception):
    """
    Base exception for all reconciliation kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "RECON_KERNEL_ERROR"


# Validation exceptions


class ValidationError(ReconKernelError):
    """Base exception for input rejected before any write."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountFormatError(ValidationError):
    """Currency input is empty, non-numeric, or loses precision."""

    code: str = "INVALID_AMOUNT_FORMAT"

    def __init__(self, value: object, reason: str = "not a valid amount"):
        self.value = repr(value) if not isinstance(value, str) else value
        self.reason = reason
        super().__init__(f"Invalid amount {self.value!r}: {reason}")


class ReasonRequiredError(ValidationError):
    """Balance correction submitted without a justification."""

    code: str = "REASON_REQUIRED"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"A non-empty reason is required to correct account {account_id}")


class ResolutionNotesRequiredError(ValidationError):
    """Discrepancy resolution submitted without notes."""

    code: str = "RESOLUTION_NOTES_REQUIRED"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Resolution notes are required to resolve discrepancy {alert_id}")


class InvalidDateRangeError(ValidationError):
    """Date bounds fail to parse, or start is not strictly before end."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: object, end: object, reason: str):
        self.start = str(start)
        self.end = str(end)
        self.reason = reason
        super().__init__(f"Invalid date range [{self.start}, {self.end}): {reason}")


class InvalidPaginationError(ValidationError):
    """Page or limit outside the accepted range."""

    code: str = "INVALID_PAGINATION"

    def __init__(self, page: int, limit: int, max_limit: int):
        self.page = page
        self.limit = limit
        self.max_limit = max_limit
        super().__init__(
            f"Invalid pagination page={page} limit={limit} "
            f"(page >= 1, 1 <= limit <= {max_limit})"
        )


class UnsupportedFormatError(ValidationError):
    """Requested report encoding is not supported."""

    code: str = "UNSUPPORTED_FORMAT"

    def __init__(self, output_format: str, supported: tuple[str, ...]):
        self.output_format = output_format
        self.supported = list(supported)
        super().__init__(
            f"Unsupported format {output_format!r}; expected one of {', '.join(supported)}"
        )


# Referential exceptions


class NotFoundError(ReconKernelError):
    """Base exception for failed referential lookups."""

    code: str = "NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    """Account has no row in the balance store."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class TransactionNotFoundError(NotFoundError):
    """Transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class DiscrepancyNotFoundError(NotFoundError):
    """Discrepancy alert with given ID was not found."""

    code: str = "DISCREPANCY_NOT_FOUND"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Discrepancy not found: {alert_id}")


# State exceptions


class StateError(ReconKernelError):
    """Base exception for operations invalid in the entity's current state."""

    code: str = "STATE_ERROR"


class DiscrepancyAlreadyResolvedError(StateError):
    """Alert has already transitioned to RESOLVED."""

    code: str = "DISCREPANCY_ALREADY_RESOLVED"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Discrepancy {alert_id} is already resolved")


# Audit exceptions


class AuditError(ReconKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_entry_id: str, expected_hash: str, actual_hash: str):
        self.audit_entry_id = audit_entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_entry_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability


class ImmutabilityViolationError(ReconKernelError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(ReconKernelError):
    """Reconciliation policy configuration is invalid."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")


# Store availability


class UnavailableError(ReconKernelError):
    """
    Underlying store is unreachable or the call timed out.

    Retryable by the caller.  The kernel never retries internally.
    """

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store unavailable during {operation}: {detail}")
