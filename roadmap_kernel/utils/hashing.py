"""
SHA-256 digests over a canonical JSON form.

Version snapshots store ``state_digest(snapshot)`` so VersionStore.verify
can tell when a stored row no longer matches its content; configuration
documents are checksummed the same way.

Canonical form: sorted keys, no whitespace; amounts in plain notation with
trailing zeros dropped (``Decimal("50000.00")`` and ``Decimal("5E+4")``
both become ``"50000"``); dates ISO-8601; UUIDs and enums by value.
"""

import hashlib
import json
from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _canonical_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"{type(value).__name__} has no canonical form")


def canonical_json(state: Mapping[str, Any]) -> str:
    return json.dumps(
        dict(state),
        sort_keys=True,
        separators=(",", ":"),
        default=_canonical_value,
    )


def state_digest(state: Mapping[str, Any]) -> str:
    """Hex SHA-256 of ``canonical_json(state)``."""
    return hashlib.sha256(canonical_json(state).encode("utf-8")).hexdigest()
