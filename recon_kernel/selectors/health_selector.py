"""
Module: recon_kernel.selectors.health_selector
Responsibility: Read-only queries over financial health snapshots.
Architecture position: Kernel > Selectors.
"""

from datetime import datetime

from sqlalchemy import select

from recon_kernel.domain.dtos import Page
from recon_kernel.models.health_check import FinancialHealthCheck
from recon_kernel.selectors.base import DEFAULT_MAX_LIMIT, BaseSelector


class HealthSelector(BaseSelector):
    """Selector for health check history."""

    def since(self, since: datetime) -> list[FinancialHealthCheck]:
        """Snapshots taken at or after ``since``, newest first."""
        return list(
            self.session.execute(
                select(FinancialHealthCheck)
                .where(FinancialHealthCheck.checked_at >= since)
                .order_by(FinancialHealthCheck.checked_at.desc(), FinancialHealthCheck.id.desc())
            ).scalars().all()
        )

    def history(
        self,
        since: datetime | None = None,
        page: int = 1,
        limit: int = 20,
        max_limit: int = DEFAULT_MAX_LIMIT,
    ) -> Page[FinancialHealthCheck]:
        query = select(FinancialHealthCheck)
        if since is not None:
            query = query.where(FinancialHealthCheck.checked_at >= since)
        query = query.order_by(
            FinancialHealthCheck.checked_at.desc(),
            FinancialHealthCheck.id.desc(),
        )
        return self._paginate(query, page, limit, max_limit)
