"""
Module: roadmap_kernel.models.workflow
Responsibility: ORM persistence for project approval workflows.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    WF-1 -- Lifecycle state machine: DB check constraint limits status
            values; the workflow engine enforces transition rules.
    WF-5 -- One active workflow per project: a partial unique index over
            (project_id) where status is pending or in_progress rejects a
            second concurrent submission at flush time.
    WF-6 -- Optimistic concurrency: ``revision`` is bumped on every state
            change; writers compare-and-swap on the revision they read.

Failure modes:
    - IntegrityError on a duplicate active workflow (WF-5).
    - Zero-row UPDATE on a stale revision (surfaced by the engine as
      ConcurrentModificationError).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from roadmap_kernel.domain.approval import Workflow


_ACTIVE_WHERE = "workflow_status IN ('pending', 'in_progress')"


class ApprovalWorkflowModel(Base):
    """Persistent approval workflow instance.

    Contract:
        ``required_approvers`` and ``sequential`` are snapshotted from
        the tier at creation and never rewritten (WF-3).
        Terminal statuses are never left once set.
    """

    __tablename__ = "project_approval_workflows"

    __table_args__ = (
        CheckConstraint(
            "workflow_status IN ('pending', 'in_progress', 'approved', "
            "'rejected', 'revision_requested')",
            name="ck_project_approval_workflows_valid_status",
        ),
        CheckConstraint(
            "current_step >= 1 AND current_step <= total_steps",
            name="ck_project_approval_workflows_step_range",
        ),
        # WF-5: at most one active workflow per project
        Index(
            "ix_project_approval_workflows_active_unique",
            "project_id",
            unique=True,
            postgresql_where=text(_ACTIVE_WHERE),
            sqlite_where=text(_ACTIVE_WHERE),
        ),
        UniqueConstraint(
            "project_id", "cycle",
            name="uq_project_approval_workflows_cycle",
        ),
        Index(
            "ix_project_approval_workflows_status",
            "workflow_status", "submitted_at",
        ),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("roadmap_projects.id"),
        nullable=False,
    )
    tier_name: Mapped[str] = mapped_column(String(100), nullable=False)
    required_approvers: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    completed_approvers: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    pending_approvers: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    sequential: Mapped[bool] = mapped_column(nullable=False, default=True)
    workflow_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="pending",
    )
    current_step: Mapped[int] = mapped_column(nullable=False, default=1)
    total_steps: Mapped[int] = mapped_column(nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(nullable=False)
    sla_deadline: Mapped[datetime] = mapped_column(nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cycle: Mapped[int] = mapped_column(nullable=False, default=1)
    revision: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<ApprovalWorkflow {self.id} project={self.project_id} "
            f"tier={self.tier_name} status={self.workflow_status} "
            f"rev={self.revision}>"
        )

    def to_dto(self) -> Workflow:
        """Convert ORM model to frozen domain DTO."""
        from roadmap_kernel.domain.approval import Workflow, WorkflowStatus

        return Workflow(
            workflow_id=self.id,
            project_id=self.project_id,
            tier_name=self.tier_name,
            required_approvers=tuple(self.required_approvers),
            completed_approvers=tuple(self.completed_approvers),
            pending_approvers=tuple(self.pending_approvers),
            sequential=self.sequential,
            status=WorkflowStatus(self.workflow_status),
            current_step=self.current_step,
            total_steps=self.total_steps,
            submitted_at=self.submitted_at,
            sla_deadline=self.sla_deadline,
            completed_at=self.completed_at,
            cycle=self.cycle,
            revision=self.revision,
        )

    @classmethod
    def from_dto(cls, dto: Workflow) -> ApprovalWorkflowModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.workflow_id,
            project_id=dto.project_id,
            tier_name=dto.tier_name,
            required_approvers=list(dto.required_approvers),
            completed_approvers=list(dto.completed_approvers),
            pending_approvers=list(dto.pending_approvers),
            sequential=dto.sequential,
            workflow_status=dto.status.value,
            current_step=dto.current_step,
            total_steps=dto.total_steps,
            submitted_at=dto.submitted_at,
            sla_deadline=dto.sla_deadline,
            completed_at=dto.completed_at,
            cycle=dto.cycle,
            revision=dto.revision,
        )
