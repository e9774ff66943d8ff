"""
Deterministic hashing utilities.

All hashing in the close kernel must be deterministic and reproducible.
The period lock hash, export content hashes and engine fingerprints all go
through this module.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


def _normalize(value: Any) -> Any:
    """Bring a value into the JSON data model used for canonical output.

    Integral floats and Decimals become ints so ``1.0`` and ``1`` serialize
    identically, matching JSON-number semantics.  Other Decimals become
    floats, so ``Decimal("5.5")`` and ``5.5`` hash alike.
    """
    if isinstance(value, bool) or value is None or isinstance(value, (int, str)):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else value
    if isinstance(value, Enum):
        return _normalize(value.value)
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"Canonical JSON keys must be str, got {type(key).__name__}")
            out[key] = _normalize(item)
        return out
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Non-finite Decimal is not canonical JSON: {value}")
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """
    Convert data to canonical JSON string.

    Produces a deterministic JSON representation:
    - Object keys sorted by Unicode code point
    - No whitespace
    - Arrays kept in the order given
    - Non-ASCII characters emitted as-is (UTF-8 when encoded)
    """
    return json.dumps(
        _normalize(data),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def sha256_hex(content: str | bytes) -> str:
    """Hex SHA-256 of text (UTF-8) or raw bytes."""
    raw = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(raw).hexdigest()


def hash_payload(payload: Any) -> str:
    """
    Compute SHA-256 hash of a payload.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    return sha256_hex(canonicalize_json(payload))
