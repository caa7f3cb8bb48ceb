"""
Module: recon_kernel.selectors.correction_selector
Responsibility: Read-only queries over balance corrections -- the
    checkpoints used by reconciliation and the correction history.
Architecture position: Kernel > Selectors.
"""

from datetime import datetime

from sqlalchemy import select

from recon_kernel.domain.dtos import Page
from recon_kernel.models.balance_correction import BalanceCorrection
from recon_kernel.selectors.base import DEFAULT_MAX_LIMIT, BaseSelector


class CorrectionSelector(BaseSelector):
    """Selector for balance corrections."""

    def latest_before(self, account_id: str, before: datetime) -> BalanceCorrection | None:
        """Latest correction on the account created strictly before ``before``."""
        return self.session.execute(
            select(BalanceCorrection)
            .where(
                BalanceCorrection.account_id == account_id,
                BalanceCorrection.created_at < before,
            )
            .order_by(BalanceCorrection.created_at.desc(), BalanceCorrection.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def since(self, account_id: str, since: datetime) -> list[BalanceCorrection]:
        """Corrections on the account created at or after ``since``."""
        return list(
            self.session.execute(
                select(BalanceCorrection)
                .where(
                    BalanceCorrection.account_id == account_id,
                    BalanceCorrection.created_at >= since,
                )
                .order_by(BalanceCorrection.created_at, BalanceCorrection.id)
            ).scalars().all()
        )

    def between(self, start: datetime, end: datetime) -> list[BalanceCorrection]:
        """Corrections created in ``[start, end)``, oldest first."""
        return list(
            self.session.execute(
                select(BalanceCorrection)
                .where(
                    BalanceCorrection.created_at >= start,
                    BalanceCorrection.created_at < end,
                )
                .order_by(BalanceCorrection.created_at, BalanceCorrection.id)
            ).scalars().all()
        )

    def history(
        self,
        page: int = 1,
        limit: int = 20,
        account_id: str | None = None,
        max_limit: int = DEFAULT_MAX_LIMIT,
    ) -> Page[BalanceCorrection]:
        """Paginated corrections, newest first."""
        query = select(BalanceCorrection)
        if account_id is not None:
            query = query.where(BalanceCorrection.account_id == account_id)
        query = query.order_by(
            BalanceCorrection.created_at.desc(),
            BalanceCorrection.id.desc(),
        )
        return self._paginate(query, page, limit, max_limit)
