"""
recon_services -- imperative shell over the reconciliation kernel and engines.

Services flush but never commit; ``ReconciliationEngine`` owns the
transaction boundary of every operation.
"""

from recon_services.audit_report_service import AuditReportService, render_report
from recon_services.correction_service import CorrectionService
from recon_services.engine import ReconciliationEngine
from recon_services.health_monitor import HealthMonitor
from recon_services.integrity_service import IntegrityService
from recon_services.reconciliation_service import ReconciliationService

__all__ = [
    "AuditReportService",
    "CorrectionService",
    "HealthMonitor",
    "IntegrityService",
    "ReconciliationEngine",
    "ReconciliationService",
    "render_report",
]
