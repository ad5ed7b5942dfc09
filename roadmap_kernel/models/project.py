"""
Module: roadmap_kernel.models.project
Responsibility: ORM persistence for roadmap projects -- the subject of
    budget approval.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Status and lifecycle values are limited by check constraints.
    - ``version`` is the per-project monotonic counter; the project
      repository advances it by exactly one per write with a
      compare-and-swap UPDATE, which keeps version snapshots gap-free.

Audit relevance:
    Every write to this table is mirrored by a ProjectVersion snapshot
    (best-effort or strict, per the configured version-write policy).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from roadmap_kernel.domain.project import Project


class ProjectModel(TrackedBase):
    """Persistent roadmap project.

    Contract:
        Status moves only through workflow transitions once a workflow
        exists (enforced by ProjectService, not here).
    """

    __tablename__ = "roadmap_projects"

    __table_args__ = (
        CheckConstraint(
            "status IN ('Draft', 'Pending Approval', 'Approved', "
            "'Rejected', 'Completed')",
            name="ck_roadmap_projects_valid_status",
        ),
        CheckConstraint(
            "lifecycle_phase IN ('draft', 'in_review', 'approved', 'rejected')",
            name="ck_roadmap_projects_valid_phase",
        ),
        CheckConstraint("version >= 1", name="ck_roadmap_projects_version_positive"),
        Index("ix_roadmap_projects_owner", "owner_id"),
        Index("ix_roadmap_projects_status", "status"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    header: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    department: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="Draft")
    lifecycle_phase: Mapped[str] = mapped_column(
        String(20), nullable=False, default="draft",
    )
    scenario: Mapped[str] = mapped_column(
        String(20), nullable=False, default="Base Case",
    )
    budget_total: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )
    budget_base_case: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True,
    )
    budget_best_case: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True,
    )
    budget_downside_case: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True,
    )
    actual_total: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"),
    )
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Project {self.id} {self.header!r} status={self.status} v{self.version}>"

    def to_dto(self) -> Project:
        """Convert ORM model to frozen domain DTO."""
        from roadmap_kernel.domain.project import (
            LifecyclePhase,
            Project,
            ProjectScenario,
            ProjectStatus,
        )

        return Project(
            project_id=self.id,
            owner_id=self.owner_id,
            header=self.header,
            description=self.description,
            department=self.department,
            status=ProjectStatus(self.status),
            lifecycle_phase=LifecyclePhase(self.lifecycle_phase),
            scenario=ProjectScenario(self.scenario),
            budget_total=self.budget_total,
            budget_base_case=self.budget_base_case,
            budget_best_case=self.budget_best_case,
            budget_downside_case=self.budget_downside_case,
            actual_total=self.actual_total,
            version=self.version,
            submitted_at=self.submitted_at,
            approved_at=self.approved_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
