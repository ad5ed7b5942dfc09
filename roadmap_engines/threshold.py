"""
roadmap_engines.threshold -- Pure amount-to-tier resolution.

Responsibility:
    Map a non-negative approval amount to exactly one threshold tier.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import roadmap_kernel/domain/ types and kernel exceptions.

Invariants enforced:
    - Deterministic: tiers are scanned in ascending ``min_amount`` order;
      the first tier whose [min, max) range contains the amount wins.
    - Validated tables (no gaps, no overlaps) make the first match the
      only match.

Failure modes:
    - InvalidAmountError for a negative or non-numeric amount.
    - NoMatchingTierError when no tier covers the amount.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal, InvalidOperation

from roadmap_kernel.domain.approval import ThresholdTier
from roadmap_kernel.domain.ports import TierSource
from roadmap_kernel.exceptions import InvalidAmountError, NoMatchingTierError
from roadmap_kernel.logging_config import get_logger

logger = get_logger("engines.threshold")


def _as_decimal(amount: Decimal | int | str) -> Decimal:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(str(amount)) from exc
    if not value.is_finite() or value < 0:
        raise InvalidAmountError(str(amount))
    return value


def resolve_tier(
    amount: Decimal | int | str,
    tiers: Sequence[ThresholdTier],
) -> ThresholdTier:
    """Return the tier whose range contains ``amount``."""
    value = _as_decimal(amount)
    for tier in sorted(tiers, key=lambda t: t.min_amount):
        if tier.contains(value):
            return tier
    raise NoMatchingTierError(str(value))


class ThresholdResolver:
    """Resolves amounts against a tier source.

    The source is read once per ``resolve`` call, so a tier edit takes
    effect on the next submission and never mid-resolution.
    """

    def __init__(self, source: TierSource):
        self._source = source

    def resolve(self, amount: Decimal | int | str) -> ThresholdTier:
        tiers = tuple(self._source.list_tiers())
        try:
            tier = resolve_tier(amount, tiers)
        except NoMatchingTierError:
            logger.warning(
                "tier_resolution_failed",
                extra={"amount": str(amount), "tier_count": len(tiers)},
            )
            raise
        logger.debug(
            "tier_resolved",
            extra={"amount": str(amount), "tier_name": tier.tier_name},
        )
        return tier
