"""Domain models for the reconciliation kernel."""

from recon_kernel.models.account_balance import AccountBalance
from recon_kernel.models.audit_trail import AuditEventType, AuditTrailEntry
from recon_kernel.models.balance_correction import BalanceCorrection, CorrectionType
from recon_kernel.models.health_check import FinancialHealthCheck, HealthStatus
from recon_kernel.models.reconciliation import (
    DiscrepancyAlert,
    DiscrepancySeverity,
    DiscrepancyStatus,
    ReconciliationRecord,
    ReconciliationStatus,
)
from recon_kernel.models.transaction import (
    Transaction,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "AccountBalance",
    "AuditEventType",
    "AuditTrailEntry",
    "BalanceCorrection",
    "CorrectionType",
    "DiscrepancyAlert",
    "DiscrepancySeverity",
    "DiscrepancyStatus",
    "FinancialHealthCheck",
    "HealthStatus",
    "ReconciliationRecord",
    "ReconciliationStatus",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
