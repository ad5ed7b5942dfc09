"""
roadmap_services.tier_store -- Tier configuration store.

Responsibility:
    Persists the approval tier table, seeds it from configuration, and
    guards every write so the stored table never overlaps or leaves a gap.

Architecture position:
    Services.  Implements the kernel's TierSource port; ThresholdResolver
    reads ``list_tiers`` once per resolution.

Invariants enforced:
    - Whole-table validation: each create/update/delete validates the
      prospective table with ``roadmap_config.validator`` and refuses to
      flush an invalid one (InvalidTierTableError).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from roadmap_config.schema import ApprovalConfiguration
from roadmap_config.validator import assert_valid_tier_table
from roadmap_kernel.domain.approval import ThresholdTier
from roadmap_kernel.exceptions import InvalidTierTableError
from roadmap_kernel.logging_config import get_logger
from roadmap_kernel.models.threshold import ApprovalThresholdModel

logger = get_logger("services.tier_store")


class ConfigTierSource:
    """Read-only tier source straight from a loaded configuration."""

    def __init__(self, config: ApprovalConfiguration):
        self._tiers = config.threshold_tiers()

    def list_tiers(self) -> tuple[ThresholdTier, ...]:
        return self._tiers


class SqlTierStore:
    """Tier table over the ``approval_thresholds`` table."""

    def __init__(self, session: Session):
        self._session = session

    def list_tiers(self) -> list[ThresholdTier]:
        rows = self._session.execute(
            select(ApprovalThresholdModel).order_by(ApprovalThresholdModel.min_amount)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def seed(self, tiers: Sequence[ThresholdTier]) -> bool:
        """Populate an empty table.  Returns False when tiers already exist."""
        if self.list_tiers():
            return False
        assert_valid_tier_table(tiers)
        for tier in tiers:
            self._session.add(ApprovalThresholdModel.from_dto(tier))
        self._session.flush()
        logger.info("tier_table_seeded", extra={"tier_count": len(tiers)})
        return True

    def create_tier(self, tier: ThresholdTier) -> ThresholdTier:
        current = self.list_tiers()
        assert_valid_tier_table([*current, tier])
        self._session.add(ApprovalThresholdModel.from_dto(tier))
        self._session.flush()
        logger.info("tier_created", extra={"tier_name": tier.tier_name})
        return tier

    def update_tier(self, tier_name: str, **changes: Any) -> ThresholdTier:
        """Change fields of one tier, e.g. ``update_tier("Standard", sla_hours=12)``."""
        model = self._get_model(tier_name)
        updated = replace(model.to_dto(), **changes)
        others = [t for t in self.list_tiers() if t.tier_name != tier_name]
        assert_valid_tier_table([*others, updated])

        model.tier_name = updated.tier_name
        model.min_amount = updated.min_amount
        model.max_amount = updated.max_amount
        model.required_roles = list(updated.required_roles)
        model.require_sequential = updated.sequential
        model.sla_hours = updated.sla_hours
        model.approval_order = updated.approval_order
        self._session.flush()
        logger.info(
            "tier_updated",
            extra={"tier_name": tier_name, "changed_fields": sorted(changes)},
        )
        return updated

    def delete_tier(self, tier_name: str) -> None:
        self._get_model(tier_name)
        remaining = [t for t in self.list_tiers() if t.tier_name != tier_name]
        assert_valid_tier_table(remaining)
        self._session.execute(
            delete(ApprovalThresholdModel).where(ApprovalThresholdModel.tier_name == tier_name)
        )
        self._session.flush()
        logger.info("tier_deleted", extra={"tier_name": tier_name})

    def _get_model(self, tier_name: str) -> ApprovalThresholdModel:
        model = self._session.execute(
            select(ApprovalThresholdModel).where(ApprovalThresholdModel.tier_name == tier_name)
        ).scalar_one_or_none()
        if model is None:
            raise InvalidTierTableError([f"unknown tier {tier_name!r}"])
        return model
