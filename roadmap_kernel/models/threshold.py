"""
Module: roadmap_kernel.models.threshold
Responsibility: ORM persistence for approval threshold tiers.

Architecture position: Kernel > Models.  May import from db/base.py only.

Tier-table invariants (no gaps, no overlaps, a single open-ended top
tier) span rows, so they are checked by TierStore before flush rather
than by row constraints here.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, CheckConstraint, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_kernel.db.base import Base

if TYPE_CHECKING:
    from roadmap_kernel.domain.approval import ThresholdTier


class ApprovalThresholdModel(Base):
    """Persistent threshold tier row."""

    __tablename__ = "approval_thresholds"

    __table_args__ = (
        CheckConstraint("min_amount >= 0", name="ck_approval_thresholds_min_nonneg"),
        CheckConstraint("sla_hours > 0", name="ck_approval_thresholds_sla_positive"),
    )

    tier_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    min_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    required_roles: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    require_sequential: Mapped[bool] = mapped_column(nullable=False, default=True)
    sla_hours: Mapped[int] = mapped_column(nullable=False, default=24)
    approval_order: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        upper = self.max_amount if self.max_amount is not None else "inf"
        return f"<ApprovalThreshold {self.tier_name} [{self.min_amount}, {upper})>"

    def to_dto(self) -> ThresholdTier:
        """Convert ORM model to frozen domain DTO."""
        from roadmap_kernel.domain.approval import ThresholdTier

        return ThresholdTier(
            tier_name=self.tier_name,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            required_roles=tuple(self.required_roles),
            sequential=self.require_sequential,
            sla_hours=self.sla_hours,
            approval_order=self.approval_order,
        )

    @classmethod
    def from_dto(cls, dto: ThresholdTier) -> ApprovalThresholdModel:
        """Create ORM model from domain DTO."""
        return cls(
            tier_name=dto.tier_name,
            min_amount=dto.min_amount,
            max_amount=dto.max_amount,
            required_roles=list(dto.required_roles),
            require_sequential=dto.sequential,
            sla_hours=dto.sla_hours,
            approval_order=dto.approval_order,
        )
