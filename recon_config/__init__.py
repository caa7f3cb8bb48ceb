"""
recon_config -- single public entrypoint for reconciliation policy.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the returned
    ``ReconciliationConfig`` by constructor injection and never read
    configuration files or environment variables themselves.

Architecture position:
    Configuration -- sits above ``recon_kernel`` and below
    ``recon_services``.  The kernel MUST NEVER import from
    ``recon_config``; ``recon_config.bridges`` turns config values into
    engine inputs.

Invariants enforced:
    - Invalid configuration never produces a config object; it raises
      ``ConfigurationError`` at load time.
    - Same resolved values always produce the same checksum.

Audit relevance:
    Every successful ``get_active_config()`` call logs ``config_loaded``
    with the checksum, so each reconciliation run can be tied back to the
    policy that classified its discrepancies.
"""

from __future__ import annotations

from pathlib import Path

from recon_config.loader import load_config
from recon_config.schema import ReconciliationConfig
from recon_kernel.logging_config import get_logger

logger = get_logger("config")


def get_active_config(config_path: Path | str | None = None) -> ReconciliationConfig:
    """
    Load the active reconciliation configuration.

    Args:
        config_path: Optional YAML file whose keys override the packaged
            defaults.

    Raises:
        ConfigurationError: If the file is missing, malformed, or holds
            an invalid value.
    """
    path = Path(config_path) if config_path is not None else None
    config = load_config(path)

    logger.info(
        "config_loaded",
        extra={
            "config_source": config.source or "defaults",
            "checksum": config.checksum,
            "severity_low_below": str(config.severity.low_below),
            "severity_medium_below": str(config.severity.medium_below),
            "business_timezone": config.reconciliation.business_timezone,
        },
    )
    return config


__all__ = ["ReconciliationConfig", "get_active_config"]
