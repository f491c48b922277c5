"""
Deterministic hashing utilities.

All hashing in the compliance kernel must be deterministic and
reproducible.  This module provides the canonical hashing functions used
by the audit ledger's hash chain.
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
        if obj.tzinfo is not None:
            obj = obj.astimezone(timezone.utc)
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Produces a deterministic JSON representation:
    - Keys are sorted alphabetically
    - No whitespace
    - Consistent handling of special types (datetime, UUID, enums)
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


def hash_audit_entry(
    resource_kind: str,
    resource_id: str | None,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute the chained hash of one audit entry.

    hash = H(resource_kind | resource_id | action | payload_hash | prev_hash)

    Args:
        resource_kind: Kind of resource the action touched.
        resource_id: ID of the resource (None for ledger-level entries).
        action: Action being recorded.
        payload_hash: Hash of the entry payload (actor, details, seq, time).
        prev_hash: Hash of the previous entry (None for genesis).

    Returns:
        Hex-encoded SHA-256 hash.
    """
    components = [
        resource_kind,
        resource_id or "-",
        action,
        payload_hash,
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
