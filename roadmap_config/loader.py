"""
Configuration loader (``roadmap_config.loader``).

Responsibility
--------------
Reads the approval YAML file and parses it into ``roadmap_config.schema``
dataclasses.  Runtime callers go through
``roadmap_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad amounts or enum values  -> ``ValueError`` propagates.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from roadmap_config.schema import (
    ApprovalConfiguration,
    ApprovalSettings,
    ThresholdTierDef,
    VersionWritePolicy,
)
from roadmap_kernel.utils.hashing import state_digest


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return the parsed dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _parse_amount(value: Any, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: not a number: {value!r}") from exc


def parse_tier(data: dict[str, Any]) -> ThresholdTierDef:
    """Parse one tier mapping."""
    max_amount = data.get("max_amount")
    return ThresholdTierDef(
        name=data["name"],
        min_amount=_parse_amount(data["min_amount"], "min_amount"),
        max_amount=(
            _parse_amount(max_amount, "max_amount") if max_amount is not None else None
        ),
        required_roles=tuple(data["required_roles"]),
        sequential=bool(data.get("sequential", True)),
        sla_hours=int(data.get("sla_hours", 24)),
        approval_order=int(data.get("approval_order", 0)),
    )


def parse_settings(data: dict[str, Any] | None) -> ApprovalSettings:
    """Parse the optional ``settings`` mapping."""
    data = data or {}
    defaults = ApprovalSettings()
    return ApprovalSettings(
        version_write_policy=VersionWritePolicy(
            data.get("version_write_policy", defaults.version_write_policy.value)
        ),
        max_concurrency_retries=int(
            data.get("max_concurrency_retries", defaults.max_concurrency_retries)
        ),
    )


def parse_configuration(data: dict[str, Any]) -> ApprovalConfiguration:
    """Parse a whole configuration document."""
    return ApprovalConfiguration(
        config_id=data.get("config_id", "default"),
        version=int(data.get("version", 1)),
        tiers=tuple(parse_tier(t) for t in data["tiers"]),
        settings=parse_settings(data.get("settings")),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> ApprovalConfiguration:
    """Load and parse ``path``.  Does not validate the tier table."""
    return parse_configuration(load_yaml(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """Digest of the parsed document; key order does not matter."""
    return state_digest(data)
