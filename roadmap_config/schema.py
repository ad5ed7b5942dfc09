"""
Approval configuration schema.

Human-authored YAML is parsed into these frozen dataclasses by the
loader.  ``ApprovalConfiguration`` is the only runtime artifact; tier
definitions are bridged into kernel ``ThresholdTier`` values before the
engines see them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from roadmap_kernel.domain.approval import ThresholdTier
from roadmap_kernel.domain.project import VersionWritePolicy

__all__ = [
    "ApprovalConfiguration",
    "ApprovalSettings",
    "ThresholdTierDef",
    "VersionWritePolicy",
]


@dataclass(frozen=True)
class ThresholdTierDef:
    """One row of the tier table as authored in YAML."""

    name: str
    min_amount: Decimal
    max_amount: Decimal | None
    required_roles: tuple[str, ...]
    sequential: bool = True
    sla_hours: int = 24
    approval_order: int = 0

    def to_tier(self) -> ThresholdTier:
        return ThresholdTier(
            tier_name=self.name,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            required_roles=self.required_roles,
            sequential=self.sequential,
            sla_hours=self.sla_hours,
            approval_order=self.approval_order,
        )


@dataclass(frozen=True)
class ApprovalSettings:
    """Behavioural switches for the approval workflow."""

    version_write_policy: VersionWritePolicy = VersionWritePolicy.BEST_EFFORT
    max_concurrency_retries: int = 2


@dataclass(frozen=True)
class ApprovalConfiguration:
    """A loaded, validated approval configuration."""

    config_id: str
    version: int
    tiers: tuple[ThresholdTierDef, ...]
    settings: ApprovalSettings = field(default_factory=ApprovalSettings)
    checksum: str = ""

    def threshold_tiers(self) -> tuple[ThresholdTier, ...]:
        """Tiers as kernel values, ascending by minimum amount."""
        return tuple(
            t.to_tier() for t in sorted(self.tiers, key=lambda t: t.min_amount)
        )
