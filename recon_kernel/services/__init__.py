"""Kernel services: audit trail writer and sequence allocation."""

from recon_kernel.services.auditor_service import AuditorService, AuditTrace
from recon_kernel.services.base import BaseService
from recon_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "AuditTrace",
    "AuditorService",
    "BaseService",
    "SequenceCounter",
    "SequenceService",
]
