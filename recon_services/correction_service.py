"""
recon_services.correction_service -- Atomic balance corrections.

Responsibility:
    Validates a correction request, then replaces the stored balance,
    appends a BalanceCorrection and a BALANCE_CORRECTION audit entry in the
    caller's transaction.

Architecture position:
    Services -- stateful orchestration over kernel models and the auditor.

Invariants enforced:
    - Validation (amounts, then reason, then account) happens before any
      write; a rejected request leaves no trace.
    - The three writes share one session and one flush sequence; the
      caller's commit makes all of them visible or none.
    - Last write wins: concurrent corrections on one account are all
      accepted and all audited.  A mismatch between the observed
      ``current_balance`` and the live balance is logged as a warning and
      flagged on the audit entry; it never blocks the correction.

Failure modes:
    - InvalidAmountFormatError: current or correct balance does not parse.
    - ReasonRequiredError: reason is empty after trimming.
    - AccountNotFoundError: no balance record for the account.

Audit relevance:
    The audit entry's ``changes`` carry ``from`` (observed) and ``to``
    (applied) plus the live balance that was replaced, so the sequence of
    racing corrections can be rebuilt from the trail alone.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy.orm import Session

from recon_config.bridges import build_currency
from recon_config.schema import ReconciliationConfig
from recon_kernel.domain.audit_payloads import BalanceCorrectionPayload
from recon_kernel.domain.clock import Clock
from recon_kernel.domain.currency import parse_amount, round_amount
from recon_kernel.domain.dtos import CorrectionRequest, Page
from recon_kernel.exceptions import AccountNotFoundError, ReasonRequiredError
from recon_kernel.logging_config import get_logger
from recon_kernel.models.balance_correction import BalanceCorrection, CorrectionType
from recon_kernel.selectors.correction_selector import CorrectionSelector
from recon_kernel.selectors.ledger_selector import LedgerSelector
from recon_kernel.services.auditor_service import AuditorService
from recon_kernel.services.base import BaseService

logger = get_logger("services.correction")


class CorrectionService(BaseService):
    """
    Applies balance corrections.

    Usage:
        correction = CorrectionService(session, config, clock).correct_balance(
            CorrectionRequest(
                account_id="ACC-1",
                current_balance="৳5,000.00",
                correct_balance="৳5,500.00",
                reason="Missed deposit",
            ),
            actor_id="admin-7",
        )
        session.commit()
    """

    def __init__(
        self,
        session: Session,
        config: ReconciliationConfig,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._config = config
        self._currency = build_currency(config)
        self._ledger = LedgerSelector(session)
        self._corrections = CorrectionSelector(session)
        self._auditor = AuditorService(session, self.clock)

    def correct_balance(self, request: CorrectionRequest, actor_id: str) -> BalanceCorrection:
        observed = parse_amount(request.current_balance, self._currency)
        target = parse_amount(request.correct_balance, self._currency)

        reason = (request.reason or "").strip()
        if not reason:
            raise ReasonRequiredError(request.account_id)

        balance = self._ledger.get_balance_for_update(request.account_id)
        if balance is None:
            raise AccountNotFoundError(request.account_id)

        live_before = round_amount(balance.current_balance)
        stale = live_before != observed
        if stale:
            logger.warning(
                "balance_correction_stale_observation",
                extra={
                    "account_id": request.account_id,
                    "observed_balance": str(observed),
                    "live_balance": str(live_before),
                    "actor": actor_id,
                },
            )

        now = self.clock.now()
        difference = round_amount(target - observed)
        correction_type = CorrectionType.for_difference(difference)
        correction_id = uuid4()
        adjustment_reference = f"ADJ-{now:%Y%m%d%H%M%S}-{correction_id.hex[:8].upper()}"

        balance.current_balance = target
        balance.updated_at = now

        correction = BalanceCorrection(
            id=correction_id,
            adjustment_reference=adjustment_reference,
            account_id=request.account_id,
            original_balance=observed,
            corrected_balance=target,
            difference=difference,
            live_balance_before=live_before,
            correction_type=correction_type.value,
            reason=reason,
            evidence=request.evidence,
            actor_id=actor_id,
            created_at=now,
        )
        self.session.add(correction)
        self.session.flush()

        self._auditor.record(
            BalanceCorrectionPayload(
                account_id=request.account_id,
                from_balance=observed,
                to_balance=target,
                difference=difference,
                live_balance_before=live_before,
                correction_id=str(correction_id),
                adjustment_reference=adjustment_reference,
                correction_type=correction_type.value,
                reason=reason,
                stale_observation=stale,
            ),
            actor_id=actor_id,
        )

        logger.info(
            "balance_correction_applied",
            extra={
                "account_id": request.account_id,
                "correction_id": str(correction_id),
                "adjustment_reference": adjustment_reference,
                "from_balance": str(observed),
                "to_balance": str(target),
                "difference": str(difference),
                "correction_type": correction_type.value,
                "actor": actor_id,
            },
        )
        return correction

    def history(
        self,
        page: int = 1,
        limit: int | None = None,
        account_id: str | None = None,
    ) -> Page[BalanceCorrection]:
        return self._corrections.history(
            page=page,
            limit=limit if limit is not None else self._config.pagination.default_limit,
            account_id=account_id,
            max_limit=self._config.pagination.max_limit,
        )
