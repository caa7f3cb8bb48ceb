"""
recon_engines.tracer -- ``RECON_ENGINE_TRACE`` records for pure engine calls.

``@traced_engine`` logs one record per invocation with the engine's name
and version, how long the call took, and a fingerprint of the keyword
arguments named in ``fingerprint_fields``.  Two calls with equal inputs
produce equal fingerprints, which is how a trace line is matched to the
data it was computed from.

The decorator never touches its inputs and adds no I/O besides the log
record.  Fingerprint fields missing from the call are fingerprinted as
``null``.

Usage:
    from recon_engines.tracer import traced_engine

    @traced_engine("balance_checker", "1.0", fingerprint_fields=("snapshots",))
    def compare(self, *, snapshots, bands):
        ...
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any

from recon_kernel.logging_config import get_logger
from recon_kernel.utils.hashing import hash_payload

_logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    selected = {field: kwargs.get(field) for field in fingerprint_fields}
    return hash_payload(selected)[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.monotonic()
            result = func(*args, **kwargs)
            elapsed_ms = (time.monotonic() - started) * 1000

            _logger.info(
                "RECON_ENGINE_TRACE",
                extra={
                    "trace_type": "RECON_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "function": func.__qualname__,
                    "input_fingerprint": (
                        compute_input_fingerprint(fingerprint_fields, kwargs)
                        if fingerprint_fields else ""
                    ),
                    "duration_ms": round(elapsed_ms, 2),
                },
            )
            return result

        return wrapper

    return decorator
