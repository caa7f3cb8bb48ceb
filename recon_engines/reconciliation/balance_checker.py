"""
BalanceChecker -- Pure engine comparing expected and actual account balances.

Responsibility:
    For each account snapshot compute the expected balance (checkpoint +
    COMPLETED credits - COMPLETED debits) with fixed-point arithmetic,
    compare it with the actual stored balance using zero tolerance, and
    band any difference by magnitude.

Architecture: recon_engines -- pure calculation, zero I/O, zero DB access.
All inputs are frozen dataclasses populated by the service layer.

Invariants enforced:
    - difference = actual - expected.
    - Exact equality after rounding to 2 places; no epsilon comparison.
    - Movements whose stored amount does not parse are excluded from the
      expected balance and reported, never guessed at.
    - Output is ordered by account id, independent of input order.
"""

from __future__ import annotations

from decimal import Decimal

from recon_engines.reconciliation.types import (
    AccountSnapshot,
    BalanceComparison,
    LedgerMovement,
    ReconciliationOutcome,
    SeverityBands,
)
from recon_engines.tracer import traced_engine
from recon_kernel.domain.currency import (
    DEFAULT_CURRENCY,
    ZERO,
    CurrencyInfo,
    parse_amount,
    round_amount,
    sum_amounts,
)
from recon_kernel.exceptions import InvalidAmountFormatError
from recon_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation.balance_checker")


def net_movement(
    movements: tuple[LedgerMovement, ...],
    currency: CurrencyInfo = DEFAULT_CURRENCY,
) -> tuple[Decimal, tuple[str, ...]]:
    """
    Credits minus debits over ``movements``.

    Returns the net amount and the ids of movements skipped because their
    amount text is malformed.
    """
    credits: list[Decimal] = []
    debits: list[Decimal] = []
    skipped: list[str] = []
    for movement in movements:
        try:
            amount = parse_amount(movement.amount_text, currency)
        except InvalidAmountFormatError:
            skipped.append(movement.transaction_id)
            continue
        (credits if movement.is_credit else debits).append(amount)
    return round_amount(sum_amounts(credits) - sum_amounts(debits)), tuple(skipped)


class BalanceChecker:
    """
    Pure engine for the daily balance comparison.

    Usage:
        checker = BalanceChecker(SeverityBands(Decimal("100"), Decimal("10000")))
        outcome = checker.compare(snapshots=snapshots)
    """

    def __init__(self, bands: SeverityBands, currency: CurrencyInfo = DEFAULT_CURRENCY):
        self._bands = bands
        self._currency = currency

    def compare_account(self, snapshot: AccountSnapshot) -> BalanceComparison:
        net, skipped = net_movement(snapshot.movements, self._currency)
        expected = round_amount(snapshot.checkpoint_balance + net)
        actual = round_amount(snapshot.actual_balance)
        difference = round_amount(actual - expected)

        if skipped:
            logger.warning(
                "malformed_amounts_skipped",
                extra={
                    "account_id": snapshot.account_id,
                    "transaction_ids": list(skipped),
                },
            )

        return BalanceComparison(
            account_id=snapshot.account_id,
            expected=expected,
            actual=actual,
            difference=difference,
            severity=None if difference == ZERO else self._bands.classify(difference),
            skipped_transaction_ids=skipped,
        )

    @traced_engine(
        "balance_checker", "1.0",
        fingerprint_fields=("snapshots",),
    )
    def compare(self, *, snapshots: tuple[AccountSnapshot, ...]) -> ReconciliationOutcome:
        """Compare every snapshot; the outcome is ordered by account id."""
        comparisons = tuple(
            self.compare_account(snapshot)
            for snapshot in sorted(snapshots, key=lambda s: s.account_id)
        )
        return ReconciliationOutcome(comparisons=comparisons)
