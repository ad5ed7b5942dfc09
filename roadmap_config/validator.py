"""
Tier table validation.

Validation rules
----------------
* The table is non-empty and tier names are unique.
* Sorted by ``min_amount``, the first tier starts at 0.
* Every tier's ``max_amount`` equals the next tier's ``min_amount``: no
  gaps and no overlaps.
* Only the last tier may be open-ended (``max_amount`` is None).  A
  bounded last tier is allowed; amounts above it match no tier.
* Each tier has ``min_amount < max_amount``.
* Role lists are non-empty and contain no duplicates.
* ``sla_hours`` is positive.

Checks run on kernel ``ThresholdTier`` values so the same rules guard the
YAML file at load time and every TierStore write.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from roadmap_config.schema import ApprovalConfiguration
from roadmap_kernel.domain.approval import ThresholdTier
from roadmap_kernel.exceptions import InvalidTierTableError


@dataclass
class TierValidationResult:
    """
    Result of tier table validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)


def validate_tier_table(tiers: Sequence[ThresholdTier]) -> TierValidationResult:
    """Check every rule in the module docstring; collect all failures."""
    result = TierValidationResult()
    if not tiers:
        result.add_error("tier table is empty")
        return result

    names = [t.tier_name for t in tiers]
    for name in sorted({n for n in names if names.count(n) > 1}):
        result.add_error(f"duplicate tier name {name!r}")

    for tier in tiers:
        _validate_tier(tier, result)

    ordered = sorted(tiers, key=lambda t: t.min_amount)
    if ordered[0].min_amount != Decimal("0"):
        result.add_error(
            f"first tier {ordered[0].tier_name!r} starts at "
            f"{ordered[0].min_amount}, not 0"
        )

    for current, following in zip(ordered, ordered[1:]):
        if current.max_amount is None:
            result.add_error(
                f"tier {current.tier_name!r} is open-ended but is not the last tier"
            )
        elif current.max_amount > following.min_amount:
            result.add_error(
                f"tiers {current.tier_name!r} and {following.tier_name!r} overlap"
            )
        elif current.max_amount < following.min_amount:
            result.add_error(
                f"gap between {current.tier_name!r} and {following.tier_name!r}: "
                f"[{current.max_amount}, {following.min_amount})"
            )

    return result


def _validate_tier(tier: ThresholdTier, result: TierValidationResult) -> None:
    label = repr(tier.tier_name)
    if tier.min_amount < 0:
        result.add_error(f"tier {label} has a negative min_amount")
    if tier.max_amount is not None and tier.max_amount <= tier.min_amount:
        result.add_error(f"tier {label} has max_amount <= min_amount")
    if not tier.required_roles:
        result.add_error(f"tier {label} has no required roles")
    if len(set(tier.required_roles)) != len(tier.required_roles):
        result.add_error(f"tier {label} lists a role more than once")
    if tier.sla_hours <= 0:
        result.add_error(f"tier {label} has non-positive sla_hours")


def assert_valid_tier_table(tiers: Sequence[ThresholdTier]) -> None:
    """Raise InvalidTierTableError when ``tiers`` breaks any rule."""
    result = validate_tier_table(tiers)
    if not result.is_valid:
        raise InvalidTierTableError(result.errors)


def validate_configuration(config: ApprovalConfiguration) -> TierValidationResult:
    """Validate the tier table and settings of a loaded configuration."""
    result = validate_tier_table(config.threshold_tiers())
    if config.settings.max_concurrency_retries < 0:
        result.add_error("settings.max_concurrency_retries must be >= 0")
    return result
