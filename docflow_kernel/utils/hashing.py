"""
Deterministic hashing utilities.

All hashing in the docflow kernel must be deterministic and reproducible.
This module provides the canonical hashing functions used by the
transition log hash chain and configuration checksums.
"""

import hashlib
import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Produces a deterministic JSON representation:
    - Keys are sorted alphabetically
    - No whitespace
    - Consistent handling of special types (datetime, UUID, Enum, sets)
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """
    Compute SHA-256 hash of a payload.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _normalize_timestamp(value: datetime) -> str:
    # Backends differ in sub-second precision and tz handling; hash at
    # microsecond precision in UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def hash_transition(
    document_id: str,
    sequence_number: int,
    from_status: str | None,
    to_status: str,
    action: str,
    performed_by: str,
    comment: str | None,
    occurred_at: datetime,
    prev_hash: str | None,
) -> str:
    """
    Compute hash for one transition of a document.

    The hash includes all event fields plus the previous transition's hash,
    creating a tamper-evident chain per document.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    components = [
        str(document_id),
        str(sequence_number),
        from_status or "NONEXISTENT",
        to_status,
        action,
        str(performed_by),
        hashlib.sha256((comment or "").encode("utf-8")).hexdigest(),
        _normalize_timestamp(occurred_at),
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
