"""
Currency -- fixed-point parsing, formatting and rounding.

Responsibility:
    The single sanctioned path between text and monetary values.  Every
    amount in the engine is a ``Decimal`` quantized to exactly two decimal
    places; binary floating point is rejected at the boundary so that
    summation never accumulates rounding error.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Leaf dependency of
    every selector, engine and service.

Invariants enforced:
    - Amounts carry exactly ``MONEY_DECIMAL_PLACES`` (2) fractional digits.
    - ``round_amount`` is the ONLY rounding function; it uses ROUND_HALF_UP.
    - ``parse_amount(format_amount(x)) == round_amount(x)`` for every
      representable ``x``.
    - Display formatting (symbol, grouping) is applied only by
      ``format_amount``; storage and comparison use bare Decimals.

Failure modes:
    - InvalidAmountFormatError on empty, non-numeric, float, non-finite, or
      precision-losing input.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from recon_kernel.exceptions import InvalidAmountFormatError

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")

_MINOR_UNITS = 10 ** MONEY_DECIMAL_PLACES

# Either properly grouped thousands ("1,234,567") or plain digits ("1234567"),
# followed by an optional fraction.
_NUMBER_RE = re.compile(r"^(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?$")


@dataclass(frozen=True)
class CurrencyInfo:
    """Display information for the settlement currency."""

    code: str
    symbol: str
    name: str
    decimal_places: int = MONEY_DECIMAL_PLACES

    @property
    def prefixes(self) -> tuple[str, ...]:
        """Markers accepted in front of an amount when parsing."""
        return (self.symbol, self.code)


BDT = CurrencyInfo(code="BDT", symbol="৳", name="Bangladeshi Taka")
DEFAULT_CURRENCY = BDT

# Informal Taka marker seen in exported booking data ("Tk 1,000").
_EXTRA_PREFIXES: dict[str, tuple[str, ...]] = {"BDT": ("Tk",)}


def _quantize(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=DEFAULT_ROUNDING)


def _strip_prefix(text: str, currency: CurrencyInfo) -> str:
    prefixes = currency.prefixes + _EXTRA_PREFIXES.get(currency.code, ())
    for prefix in sorted(prefixes, key=len, reverse=True):
        if text.upper().startswith(prefix.upper()):
            return text[len(prefix):].strip()
    return text


def parse_amount(value: object, currency: CurrencyInfo = DEFAULT_CURRENCY) -> Decimal:
    """
    Parse a currency amount into a 2-place fixed-point Decimal.

    Accepts ``Decimal``, ``int`` and text such as ``"1000"``, ``"1,000.50"``,
    ``"৳1,000.50"``, ``"BDT 1000.5"`` or ``"-৳250.00"``.  Trailing zeros
    beyond two places are tolerated (``"10.500"``); any other extra
    precision is rejected rather than silently rounded.

    Raises:
        InvalidAmountFormatError: empty, non-numeric, float, non-finite,
            or more than 2 significant fractional digits.
    """
    if value is None:
        raise InvalidAmountFormatError(value, "amount is empty")
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountFormatError(
            value, "binary floating point amounts are not accepted"
        )

    if isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, Decimal):
        amount = value
    elif isinstance(value, str):
        amount = _parse_text(value, currency)
    else:
        raise InvalidAmountFormatError(value, f"unsupported type {type(value).__name__}")

    if not amount.is_finite():
        raise InvalidAmountFormatError(value, "amount must be finite")

    quantized = _quantize(amount)
    if quantized != amount:
        raise InvalidAmountFormatError(
            value, f"more than {MONEY_DECIMAL_PLACES} decimal places"
        )
    return quantized


def _parse_text(value: str, currency: CurrencyInfo) -> Decimal:
    text = value.strip()
    if not text:
        raise InvalidAmountFormatError(value, "amount is empty")

    negative = False
    if text[0] in "+-":
        negative = text[0] == "-"
        text = text[1:].lstrip()

    text = _strip_prefix(text, currency)

    # Sign written after the symbol ("৳-250.00")
    if text[:1] in ("+", "-"):
        if negative:
            raise InvalidAmountFormatError(value, "amount has more than one sign")
        negative = text[0] == "-"
        text = text[1:].lstrip()

    if not _NUMBER_RE.match(text):
        raise InvalidAmountFormatError(value, "amount is not numeric")

    try:
        amount = Decimal(text.replace(",", ""))
    except InvalidOperation as exc:
        raise InvalidAmountFormatError(value, "amount is not numeric") from exc
    return -amount if negative else amount


def round_amount(value: Decimal | int | str) -> Decimal:
    """
    Round to exactly 2 decimal places using round-half-up.

    This is the ONLY sanctioned rounding function for monetary values.
    Unlike ``parse_amount`` it accepts extra precision and rounds it away.

    Raises:
        InvalidAmountFormatError: value is not a finite number.
    """
    if isinstance(value, (bool, float)) or value is None:
        raise InvalidAmountFormatError(value, "cannot round a non-decimal amount")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise InvalidAmountFormatError(value, "amount is not numeric") from exc
    if not amount.is_finite():
        raise InvalidAmountFormatError(value, "amount must be finite")
    return _quantize(amount)


def format_amount(
    amount: Decimal | int | None,
    *,
    currency: CurrencyInfo = DEFAULT_CURRENCY,
    show_symbol: bool = True,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> str:
    """
    Format an amount for display: ``Decimal("-1234.5") -> "-৳1,234.50"``.

    ``None`` is displayed as zero.  Presentation only -- never store or
    compare the returned text.
    """
    if amount is None:
        amount = ZERO
    if isinstance(amount, (bool, float)):
        raise InvalidAmountFormatError(amount, "binary floating point amounts are not accepted")

    value = _quantize(Decimal(amount), decimal_places)
    sign = "-" if value < 0 else ""
    body = f"{abs(value):,.{decimal_places}f}"
    symbol = currency.symbol if show_symbol else ""
    return f"{sign}{symbol}{body}"


def is_valid_amount(
    value: object,
    *,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    currency: CurrencyInfo = DEFAULT_CURRENCY,
) -> bool:
    """True when ``value`` parses and is strictly positive and within bounds."""
    try:
        amount = parse_amount(value, currency)
    except InvalidAmountFormatError:
        return False
    if amount <= 0:
        return False
    if min_amount is not None and amount < min_amount:
        return False
    if max_amount is not None and amount > max_amount:
        return False
    return True


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    """Exact fixed-point sum; every term is quantized before adding."""
    total = ZERO
    for amount in amounts:
        total += round_amount(amount)
    return round_amount(total)


def amounts_equal(left: Decimal, right: Decimal) -> bool:
    """Zero-tolerance comparison after rounding both sides."""
    return round_amount(left) == round_amount(right)


def to_minor_units(amount: Decimal) -> int:
    """``Decimal("10.50") -> 1050`` (paisa)."""
    return int(round_amount(amount) * _MINOR_UNITS)


def from_minor_units(minor: int) -> Decimal:
    """``1050 -> Decimal("10.50")``."""
    return _quantize(Decimal(minor) / _MINOR_UNITS)
