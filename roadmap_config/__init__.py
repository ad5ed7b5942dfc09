"""
roadmap_config -- single public entrypoint for approval configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains the tier
    table and workflow settings.  The file is chosen by, in order: the
    ``path`` argument, the ``ROADMAP_APPROVAL_CONFIG`` environment
    variable, the packaged ``defaults/approval_tiers.yaml``.

Architecture position:
    Configuration.  Sits above ``roadmap_kernel`` and below
    ``roadmap_services``.  The kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` for a missing file.
    - ``InvalidTierTableError`` when the tier table overlaps, leaves
      gaps, or has malformed tiers.

Audit relevance:
    Every successful load emits a ``ROADMAP_CONFIG_TRACE`` log entry with
    the config id, version and checksum.
"""

from __future__ import annotations

import os
from pathlib import Path

from roadmap_config.loader import load_configuration
from roadmap_config.schema import (
    ApprovalConfiguration,
    ApprovalSettings,
    ThresholdTierDef,
    VersionWritePolicy,
)
from roadmap_config.validator import validate_configuration
from roadmap_kernel.exceptions import InvalidTierTableError
from roadmap_kernel.logging_config import get_logger

_logger = get_logger("config")

CONFIG_ENV_VAR = "ROADMAP_APPROVAL_CONFIG"

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "approval_tiers.yaml"

__all__ = [
    "ApprovalConfiguration",
    "ApprovalSettings",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "ThresholdTierDef",
    "VersionWritePolicy",
    "get_active_config",
]


def get_active_config(path: Path | str | None = None) -> ApprovalConfiguration:
    """Load, validate and return the approval configuration."""
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH
    path = Path(path)

    config = load_configuration(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise InvalidTierTableError(validation.errors)

    _logger.info(
        "ROADMAP_CONFIG_TRACE",
        extra={
            "trace_type": "ROADMAP_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "tier_count": len(config.tiers),
            "version_write_policy": config.settings.version_write_policy.value,
            "source": str(path),
        },
    )
    return config
