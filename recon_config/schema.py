"""
ReconciliationConfig schema.

Frozen policy values for the reconciliation engine.  YAML is parsed into
these types by the loader; nothing else constructs them outside tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CurrencyConfig:
    """Presentation currency.  Only 2-place currencies are supported."""

    code: str = "BDT"
    symbol: str = "৳"
    decimal_places: int = 2


@dataclass(frozen=True)
class SeverityConfig:
    """Discrepancy magnitude bands (absolute difference, currency units)."""

    low_below: Decimal = Decimal("100.00")
    medium_below: Decimal = Decimal("10000.00")


@dataclass(frozen=True)
class IntegrityConfig:
    duplicate_window_seconds: int = 300


@dataclass(frozen=True)
class ReconciliationPolicy:
    business_timezone: str = "UTC"
    verify_integrity: bool = False


@dataclass(frozen=True)
class PaginationConfig:
    default_limit: int = 20
    max_limit: int = 100


@dataclass(frozen=True)
class HealthConfig:
    history_days: int = 30


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationConfig:
    """
    The resolved configuration.

    ``checksum`` is the SHA-256 of the canonical form of the resolved
    values and identifies the configuration in logs.  ``source`` names the
    override file, or None for the packaged defaults.
    """

    currency: CurrencyConfig = field(default_factory=CurrencyConfig)
    severity: SeverityConfig = field(default_factory=SeverityConfig)
    integrity: IntegrityConfig = field(default_factory=IntegrityConfig)
    reconciliation: ReconciliationPolicy = field(default_factory=ReconciliationPolicy)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    checksum: str = ""
    source: str | None = None
