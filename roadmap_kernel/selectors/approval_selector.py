"""
Module: roadmap_kernel.selectors.approval_selector
Responsibility: Read side of the approval workflow -- approvals inbox,
    audit trail, version history and SLA breach report.
Architecture position: Kernel > Selectors.  Read-only.

Ordering contracts:
    - ``pending_for_role``: oldest submission first.
    - ``ledger``: newest first; equal timestamps put the later insertion
      (higher ``seq``) first.
    - ``versions``: ascending version number.
    - ``workflow_history``: ascending submission cycle.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, or_, select

from roadmap_kernel.domain.approval import (
    ACTIVE_WORKFLOW_STATUSES,
    LedgerEntry,
    PendingApproval,
    Workflow,
)
from roadmap_kernel.domain.project import ProjectVersion
from roadmap_kernel.models.ledger import ApprovalLedgerEntryModel
from roadmap_kernel.models.project import ProjectModel
from roadmap_kernel.models.version import ProjectVersionModel
from roadmap_kernel.models.workflow import ApprovalWorkflowModel
from roadmap_kernel.selectors.base import BaseSelector

_ACTIVE = [s.value for s in ACTIVE_WORKFLOW_STATUSES]


class ApprovalSelector(BaseSelector[ApprovalWorkflowModel]):
    """Queries over workflows, ledger entries and project versions."""

    def pending_for_role(self, actor_role: str) -> list[PendingApproval]:
        """
        Projects whose active workflow still lists ``actor_role`` as pending.

        Under a sequential tier a role that is not yet next is included
        with ``can_approve_now=False``; it may still reject or request
        revision.
        """
        rows = self.session.execute(
            select(ApprovalWorkflowModel, ProjectModel)
            .join(ProjectModel, ProjectModel.id == ApprovalWorkflowModel.project_id)
            .where(ApprovalWorkflowModel.workflow_status.in_(_ACTIVE))
            .order_by(ApprovalWorkflowModel.submitted_at, ApprovalWorkflowModel.id)
        ).all()

        result = []
        for workflow_model, project_model in rows:
            workflow = workflow_model.to_dto()
            if actor_role in workflow.pending_approvers:
                result.append(
                    PendingApproval(
                        project=project_model.to_dto(),
                        workflow=workflow,
                        can_approve_now=workflow.awaits(actor_role),
                    )
                )
        return result

    def ledger(self, project_id: UUID) -> list[LedgerEntry]:
        rows = self.session.execute(
            select(ApprovalLedgerEntryModel)
            .where(ApprovalLedgerEntryModel.project_id == project_id)
            .order_by(
                ApprovalLedgerEntryModel.created_at.desc(),
                ApprovalLedgerEntryModel.seq.desc(),
            )
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def versions(self, project_id: UUID) -> list[ProjectVersion]:
        rows = self.session.execute(
            select(ProjectVersionModel)
            .where(ProjectVersionModel.project_id == project_id)
            .order_by(ProjectVersionModel.version_number)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def workflow_history(self, project_id: UUID) -> list[Workflow]:
        rows = self.session.execute(
            select(ApprovalWorkflowModel)
            .where(ApprovalWorkflowModel.project_id == project_id)
            .order_by(ApprovalWorkflowModel.cycle)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def current_workflow(self, project_id: UUID) -> Workflow | None:
        """The active workflow, else the most recent one, else None."""
        history = self.workflow_history(project_id)
        for workflow in history:
            if not workflow.is_terminal:
                return workflow
        return history[-1] if history else None

    def overdue(self, as_of: datetime) -> list[Workflow]:
        """
        Workflows that breached their SLA: still open past the deadline,
        or closed after it.  Earliest deadline first.
        """
        rows = self.session.execute(
            select(ApprovalWorkflowModel)
            .where(
                or_(
                    and_(
                        ApprovalWorkflowModel.workflow_status.in_(_ACTIVE),
                        ApprovalWorkflowModel.sla_deadline < as_of,
                    ),
                    and_(
                        ApprovalWorkflowModel.completed_at.is_not(None),
                        ApprovalWorkflowModel.completed_at > ApprovalWorkflowModel.sla_deadline,
                    ),
                )
            )
            .order_by(ApprovalWorkflowModel.sla_deadline, ApprovalWorkflowModel.id)
        ).scalars().all()
        return [w for w in (row.to_dto() for row in rows) if w.is_overdue(as_of)]
