"""
Config -> Engine Bridges.

Functions that convert ``ReconciliationConfig`` values into engine and
kernel inputs.  These live in recon_config (the producer) because the
kernel must NEVER import recon_config.

Usage:
    from recon_config.bridges import build_severity_bands, business_zone

    config = get_active_config()
    bands = build_severity_bands(config)
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from recon_config.schema import ReconciliationConfig
from recon_engines.reconciliation.types import SeverityBands
from recon_kernel.domain.currency import CurrencyInfo


def build_severity_bands(config: ReconciliationConfig) -> SeverityBands:
    return SeverityBands(
        low_below=config.severity.low_below,
        medium_below=config.severity.medium_below,
    )


def business_zone(config: ReconciliationConfig) -> ZoneInfo:
    """Timezone whose midnight bounds a reconciliation date."""
    return ZoneInfo(config.reconciliation.business_timezone)


def build_currency(config: ReconciliationConfig) -> CurrencyInfo:
    """Settlement currency used to parse inputs and render amounts."""
    return CurrencyInfo(
        code=config.currency.code,
        symbol=config.currency.symbol,
        name=config.currency.code,
        decimal_places=config.currency.decimal_places,
    )
