"""
Deterministic hashing for the audit chain and configuration checksums.

Hashes are taken over canonical JSON: sorted keys, no insignificant
whitespace, and fixed string forms for amounts, timestamps and ids.  The
same logical content always produces the same digest, on any machine.
"""

import hashlib
import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

GENESIS = "GENESIS"


def _encode_default(obj: Any) -> Any:
    # Decimal keeps its scale: "10.50" and "10.5" hash differently.
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    raise TypeError(f"Cannot canonicalize {type(obj).__name__}")


def canonicalize_json(data: Any) -> str:
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_encode_default,
        ensure_ascii=False,
    )


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: Any) -> str:
    """SHA-256 hex digest of ``payload``'s canonical JSON."""
    return sha256_hex(canonicalize_json(payload))


def hash_audit_entry(
    entity_type: str,
    entity_id: str,
    event_type: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain hash of one audit entry.

    Covers the entity, the event type, the payload digest and the previous
    entry's hash (``GENESIS`` for the first entry), joined with ``|``.
    Changing or removing any earlier entry changes every later hash.
    """
    return sha256_hex(
        "|".join((entity_type, str(entity_id), event_type, payload_hash, prev_hash or GENESIS))
    )
