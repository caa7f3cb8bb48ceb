"""
Configuration Loader (``recon_config.loader``).

Responsibility
--------------
Loads the packaged defaults and an optional override file, merges them
key by key, and parses the result into the frozen ``schema`` dataclasses.
The single public entry point for runtime config is
``recon_config.get_active_config()``.

Invariants enforced
-------------------
* Every parse or range error raises ``ConfigurationError`` naming the
  offending dotted key; unknown sections and keys are rejected.
* ``compute_checksum`` is deterministic for the same resolved values.

Failure modes
-------------
* Missing override file  -> ``ConfigurationError``.
* Malformed YAML  -> ``ConfigurationError`` (``yaml.YAMLError`` chained).
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from recon_config.schema import (
    CurrencyConfig,
    HealthConfig,
    IntegrityConfig,
    PaginationConfig,
    ReconciliationConfig,
    ReconciliationPolicy,
    SeverityConfig,
)
from recon_kernel.exceptions import ConfigurationError
from recon_kernel.utils.hashing import hash_payload

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: if the file is missing, unreadable, not valid
            YAML, or its top level is not a mapping.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(str(path), "file not found") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def merge_sections(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``override`` on ``base`` one section deep."""
    merged = {name: dict(values) for name, values in base.items()}
    for name, values in override.items():
        if name not in merged:
            raise ConfigurationError(name, "unknown configuration section")
        if not isinstance(values, dict):
            raise ConfigurationError(name, "section must be a mapping")
        for key in values:
            if key not in merged[name]:
                raise ConfigurationError(f"{name}.{key}", "unknown configuration key")
        merged[name].update(values)
    return merged


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------


def _decimal(key: str, value: Any) -> Decimal:
    # Floats are refused; YAML amounts must be quoted or integral
    if isinstance(value, bool) or isinstance(value, float):
        raise ConfigurationError(key, "must be a quoted decimal string or an integer")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(key, f"not a decimal: {value!r}") from exc
    if not result.is_finite():
        raise ConfigurationError(key, "must be finite")
    return result


def _int(key: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, f"must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(key, f"must be >= {minimum}")
    return value


def _bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(key, f"must be true or false, got {value!r}")
    return value


def _str(key: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(key, "must be a non-empty string")
    return value.strip()


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_currency(data: dict[str, Any]) -> CurrencyConfig:
    decimal_places = _int("currency.decimal_places", data["decimal_places"], 0)
    if decimal_places != 2:
        raise ConfigurationError("currency.decimal_places", "only 2 decimal places are supported")
    return CurrencyConfig(
        code=_str("currency.code", data["code"]).upper(),
        symbol=_str("currency.symbol", data["symbol"]),
        decimal_places=decimal_places,
    )


def parse_severity(data: dict[str, Any]) -> SeverityConfig:
    low_below = _decimal("severity.low_below", data["low_below"])
    medium_below = _decimal("severity.medium_below", data["medium_below"])
    if low_below <= 0:
        raise ConfigurationError("severity.low_below", "must be positive")
    if low_below >= medium_below:
        raise ConfigurationError(
            "severity.medium_below", "must be greater than severity.low_below"
        )
    return SeverityConfig(low_below=low_below, medium_below=medium_below)


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationPolicy:
    timezone = _str("reconciliation.business_timezone", data["business_timezone"])
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(
            "reconciliation.business_timezone", f"unknown timezone {timezone!r}"
        ) from exc
    return ReconciliationPolicy(
        business_timezone=timezone,
        verify_integrity=_bool("reconciliation.verify_integrity", data["verify_integrity"]),
    )


def parse_pagination(data: dict[str, Any]) -> PaginationConfig:
    default_limit = _int("pagination.default_limit", data["default_limit"], 1)
    max_limit = _int("pagination.max_limit", data["max_limit"], 1)
    if default_limit > max_limit:
        raise ConfigurationError(
            "pagination.default_limit", "must not exceed pagination.max_limit"
        )
    return PaginationConfig(default_limit=default_limit, max_limit=max_limit)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON of the resolved values."""
    return hash_payload(data)


def parse_config(data: dict[str, Any], source: str | None = None) -> ReconciliationConfig:
    """
    Parse a fully merged configuration mapping.

    Preconditions:
        - ``data`` contains every section and key of ``defaults.yaml``.
    Raises:
        ConfigurationError: on the first invalid value.
    """
    config = ReconciliationConfig(
        currency=parse_currency(data["currency"]),
        severity=parse_severity(data["severity"]),
        integrity=IntegrityConfig(
            duplicate_window_seconds=_int(
                "integrity.duplicate_window_seconds",
                data["integrity"]["duplicate_window_seconds"],
                0,
            ),
        ),
        reconciliation=parse_reconciliation(data["reconciliation"]),
        pagination=parse_pagination(data["pagination"]),
        health=HealthConfig(
            history_days=_int("health.history_days", data["health"]["history_days"], 1),
        ),
        source=source,
    )
    resolved = {
        "currency": {
            "code": config.currency.code,
            "symbol": config.currency.symbol,
            "decimal_places": config.currency.decimal_places,
        },
        "severity": {
            "low_below": config.severity.low_below,
            "medium_below": config.severity.medium_below,
        },
        "integrity": {
            "duplicate_window_seconds": config.integrity.duplicate_window_seconds,
        },
        "reconciliation": {
            "business_timezone": config.reconciliation.business_timezone,
            "verify_integrity": config.reconciliation.verify_integrity,
        },
        "pagination": {
            "default_limit": config.pagination.default_limit,
            "max_limit": config.pagination.max_limit,
        },
        "health": {"history_days": config.health.history_days},
    }
    return replace(config, checksum=compute_checksum(resolved))


def load_config(config_path: Path | None = None) -> ReconciliationConfig:
    """Load defaults, overlay ``config_path`` if given, and parse."""
    data = load_yaml_file(DEFAULTS_PATH)
    if config_path is not None:
        data = merge_sections(data, load_yaml_file(config_path))
    return parse_config(data, source=str(config_path) if config_path else None)
