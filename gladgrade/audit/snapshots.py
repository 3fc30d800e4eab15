"""
Encoding of before/after snapshots for the audit_logs text columns.

Snapshots are stored as JSON text. Values JSON cannot represent natively
(datetimes, decimals, UUIDs, ...) are stored as strings, so deeply nested or
exotic values are not guaranteed to round-trip losslessly.
"""
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

TRUNCATED_MARKER = "_truncated"
MAX_LISTED_KEYS = 50


def _default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _string_keys(value: Any) -> Any:
    """Stringify mapping keys at every depth so mixed key types can be sorted."""
    if isinstance(value, Mapping):
        return {str(key): _string_keys(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_string_keys(item) for item in value]
    return value


def encode_snapshot(values: Optional[Mapping[str, Any]], max_bytes: int) -> Optional[str]:
    """
    Encode a snapshot mapping to JSON text for storage.

    Args:
        values: Key/value snapshot, or None
        max_bytes: Upper bound on the encoded size

    Returns:
        JSON text, or None when there is no snapshot. Oversized snapshots are
        replaced by a marker object listing the encoded size and keys.
    """
    if values is None:
        return None

    encoded = json.dumps(_string_keys(values), default=_default, sort_keys=True)
    size = len(encoded.encode("utf-8"))
    if size <= max_bytes:
        return encoded

    keys = sorted(str(key) for key in values.keys())
    logger.warning(f"Audit snapshot of {size} bytes exceeds {max_bytes} bytes; storing summary only")
    return json.dumps({
        TRUNCATED_MARKER: True,
        "_original_bytes": size,
        "_keys": keys[:MAX_LISTED_KEYS],
    })


def decode_snapshot(stored: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse stored snapshot text back into a mapping."""
    if stored is None or stored == "":
        return None
    if isinstance(stored, dict):
        return stored

    try:
        decoded = json.loads(stored)
    except (TypeError, ValueError):
        return {"_raw": stored}

    if isinstance(decoded, dict):
        return decoded
    return {"_value": decoded}


def is_truncated(snapshot: Optional[Mapping[str, Any]]) -> bool:
    """True when a decoded snapshot is the oversize marker."""
    return bool(snapshot) and snapshot.get(TRUNCATED_MARKER) is True
