"""
WorkflowEngine -- approval workflow state machine.

Responsibility:
    Opens a workflow when a project is submitted, records approvals,
    rejections and revision requests, keeps the project's status in step
    with the workflow, and appends every action to the approval ledger.

Architecture position:
    Kernel > Services.  Consumes the ProjectRepository, RoleDirectory,
    TierResolver and ActionGuard ports from ``domain/ports.py``; the
    concrete resolver and guard live in ``roadmap_engines`` and are
    injected by the outer service layer.

Invariants enforced:
    WF-1 -- Lifecycle: transitions follow WORKFLOW_TRANSITIONS; terminal
            workflows reject every action with WorkflowTerminalError.
    WF-2 -- Approver partition: completed and pending always split the
            required roles (enforced by Workflow.with_approval).
    WF-3 -- Role snapshot: required roles and the sequential flag are
            copied from the tier at submission, never re-read.
    WF-5 -- One active workflow per project (check here, partial unique
            index in the model).
    WF-6 -- Compare-and-swap: every state change is
            ``UPDATE ... WHERE id = :id AND revision = :read_revision``;
            zero rows raises ConcurrentModificationError.

Failure modes:
    - DuplicateWorkflowError, InvalidProjectStateError on submit.
    - TierResolutionError (via the resolver) when no tier matches.
    - WorkflowNotFoundError, WorkflowTerminalError, NotAuthorizedError,
      OutOfSequenceError, MissingJustificationError on actions.
    - ConcurrentModificationError on a lost race.

Audit relevance:
    Every successful action writes exactly one ledger entry in the same
    transaction as the workflow and project changes.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from roadmap_kernel.domain.approval import (
    ACTIVE_WORKFLOW_STATUSES,
    LedgerAction,
    LedgerEntry,
    Workflow,
    WorkflowAction,
    WorkflowStatus,
)
from roadmap_kernel.domain.clock import Clock
from roadmap_kernel.domain.ports import (
    ActionGuard,
    ProjectRepository,
    RoleDirectory,
    TierResolver,
)
from roadmap_kernel.domain.project import (
    SUBMITTABLE_STATUSES,
    LifecyclePhase,
    ProjectStatus,
)
from roadmap_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateWorkflowError,
    InvalidProjectStateError,
    MissingJustificationError,
    NotAuthorizedError,
    WorkflowNotFoundError,
    WorkflowTerminalError,
)
from roadmap_kernel.logging_config import LogContext, get_logger
from roadmap_kernel.models.workflow import ApprovalWorkflowModel
from roadmap_kernel.services.base import BaseService
from roadmap_kernel.services.ledger_service import ApprovalLedger

logger = get_logger("services.workflow")

# Terminal outcome of reject / request_revision -> (workflow status,
# ledger action, project status, lifecycle phase).
_TERMINATIONS = {
    WorkflowAction.REJECT: (
        WorkflowStatus.REJECTED,
        LedgerAction.REJECTED,
        ProjectStatus.REJECTED,
        LifecyclePhase.REJECTED,
    ),
    WorkflowAction.REQUEST_REVISION: (
        WorkflowStatus.REVISION_REQUESTED,
        LedgerAction.REVISION_REQUESTED,
        ProjectStatus.DRAFT,
        LifecyclePhase.DRAFT,
    ),
}


class WorkflowEngine(BaseService[ApprovalWorkflowModel]):
    """
    Approval workflow state machine over the ``project_approval_workflows``
    table.

    Non-goals:
        - Does NOT commit; the caller's ``session_scope`` owns the
          transaction so workflow, ledger and project commit together.
        - Does NOT retry lost races; BudgetApprovalService does.
    """

    def __init__(
        self,
        session: Session,
        projects: ProjectRepository,
        roles: RoleDirectory,
        resolver: TierResolver,
        guard: ActionGuard,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._projects = projects
        self._roles = roles
        self._resolver = resolver
        self._guard = guard
        self._ledger = ApprovalLedger(session, self.clock)

    # -- lookups -------------------------------------------------------

    def _load(self, workflow_id: UUID) -> Workflow:
        model = self.session.execute(
            select(ApprovalWorkflowModel)
            .where(ApprovalWorkflowModel.id == workflow_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise WorkflowNotFoundError(str(workflow_id))
        return model.to_dto()

    def get(self, workflow_id: UUID) -> Workflow:
        return self._load(workflow_id)

    def active_for(self, project_id: UUID) -> Workflow | None:
        """The project's pending or in-progress workflow, if any."""
        model = self.session.execute(
            select(ApprovalWorkflowModel)
            .where(
                ApprovalWorkflowModel.project_id == project_id,
                ApprovalWorkflowModel.workflow_status.in_(
                    [s.value for s in ACTIVE_WORKFLOW_STATUSES]
                ),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def latest_for(self, project_id: UUID) -> Workflow | None:
        """The project's most recent workflow, active or not."""
        model = self.session.execute(
            select(ApprovalWorkflowModel)
            .where(ApprovalWorkflowModel.project_id == project_id)
            .order_by(ApprovalWorkflowModel.cycle.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def _next_cycle(self, project_id: UUID) -> int:
        last = self.session.execute(
            select(func.max(ApprovalWorkflowModel.cycle))
            .where(ApprovalWorkflowModel.project_id == project_id)
        ).scalar_one_or_none()
        return (last or 0) + 1

    # -- submit --------------------------------------------------------

    def submit(self, project_id: UUID, actor_id: UUID) -> Workflow:
        """
        Open a workflow for ``project_id`` at the tier matching its
        approval amount.

        Postconditions:
            - Workflow is PENDING at step 1 with all tier roles pending.
            - One ``submitted`` ledger entry.
            - Project is Pending Approval / in_review with submitted_at.
        """
        project = self._projects.get(project_id)

        active = self.active_for(project_id)
        if active is not None:
            raise DuplicateWorkflowError(str(project_id), str(active.workflow_id))
        if project.status not in SUBMITTABLE_STATUSES:
            raise InvalidProjectStateError(
                str(project_id), project.status.value, "submit",
            )

        amount = project.approval_amount
        tier = self._resolver.resolve(amount)

        now = self.clock.now()
        workflow = Workflow.open(
            workflow_id=uuid4(),
            project_id=project_id,
            tier=tier,
            submitted_at=now,
            cycle=self._next_cycle(project_id),
        )
        try:
            with self.session.begin_nested():
                self.session.add(ApprovalWorkflowModel.from_dto(workflow))
                self.session.flush()
        except IntegrityError as exc:
            # Lost the race against a concurrent submit of the same project.
            winner = self.active_for(project_id)
            raise DuplicateWorkflowError(
                str(project_id),
                str(winner.workflow_id) if winner else "unknown",
            ) from exc

        self._ledger.append(
            LedgerEntry(
                entry_id=uuid4(),
                project_id=project_id,
                actor_id=actor_id,
                action=LedgerAction.SUBMITTED,
                created_at=now,
                workflow_id=workflow.workflow_id,
            )
        )
        self._projects.apply_workflow_status(
            project_id,
            ProjectStatus.PENDING_APPROVAL,
            LifecyclePhase.IN_REVIEW,
            actor_id,
            now,
        )

        logger.info(
            "workflow_submitted",
            extra={
                "workflow_id": str(workflow.workflow_id),
                "project_id": str(project_id),
                "actor_id": str(actor_id),
                "tier_name": tier.tier_name,
                "amount": str(amount),
                "required_approvers": list(workflow.required_approvers),
                "cycle": workflow.cycle,
                "sla_deadline": workflow.sla_deadline.isoformat(),
            },
        )
        return workflow

    # -- approve -------------------------------------------------------

    def approve(
        self,
        workflow_id: UUID,
        actor_role: str,
        actor_id: UUID,
        notes: str = "",
    ) -> Workflow:
        """
        Record ``actor_role``'s approval.

        Preconditions (checked in this order):
            - Workflow is not terminal.
            - ``actor_id`` holds ``actor_role``.
            - ``actor_role`` is pending, and next in line when sequential.
        """
        with LogContext.bind(workflow_id=str(workflow_id), actor_id=str(actor_id)):
            workflow = self._load(workflow_id)
            self._require_active(workflow)

            if actor_role not in self._roles.roles_of(actor_id):
                self._log_denied(workflow, actor_role, WorkflowAction.APPROVE)
                raise NotAuthorizedError(
                    str(workflow_id), actor_role, "actor does not hold this role",
                )
            self._guard.check_can_act(workflow, actor_role, WorkflowAction.APPROVE)

            now = self.clock.now()
            updated = self._compare_and_swap(
                workflow, workflow.with_approval(actor_role, now),
            )

            self._ledger.append(
                LedgerEntry(
                    entry_id=uuid4(),
                    project_id=workflow.project_id,
                    actor_id=actor_id,
                    action=LedgerAction.APPROVED,
                    notes=notes or "",
                    created_at=now,
                    workflow_id=workflow_id,
                    actor_role=actor_role,
                )
            )

            if updated.status is WorkflowStatus.APPROVED:
                self._projects.apply_workflow_status(
                    workflow.project_id,
                    ProjectStatus.APPROVED,
                    LifecyclePhase.APPROVED,
                    actor_id,
                    now,
                )

            logger.info(
                "workflow_approved" if updated.is_terminal else "workflow_step_approved",
                extra={
                    "workflow_id": str(workflow_id),
                    "project_id": str(workflow.project_id),
                    "actor_role": actor_role,
                    "status": updated.status.value,
                    "current_step": updated.current_step,
                    "total_steps": updated.total_steps,
                    "overdue": updated.is_overdue(now),
                },
            )
            return updated

    # -- reject / request revision -------------------------------------

    def reject(self, workflow_id: UUID, actor_id: UUID, notes: str) -> Workflow:
        """Close the workflow as rejected; the project becomes Rejected."""
        return self._terminate(workflow_id, actor_id, notes, WorkflowAction.REJECT)

    def request_revision(self, workflow_id: UUID, actor_id: UUID, notes: str) -> Workflow:
        """Close the workflow and return the project to Draft for rework."""
        return self._terminate(
            workflow_id, actor_id, notes, WorkflowAction.REQUEST_REVISION,
        )

    def _terminate(
        self,
        workflow_id: UUID,
        actor_id: UUID,
        notes: str,
        action: WorkflowAction,
    ) -> Workflow:
        if notes is None or not notes.strip():
            raise MissingJustificationError(action.value)

        status, ledger_action, project_status, phase = _TERMINATIONS[action]

        with LogContext.bind(workflow_id=str(workflow_id), actor_id=str(actor_id)):
            workflow = self._load(workflow_id)
            self._require_active(workflow)

            role = self._guard.acting_role_for(
                workflow, self._roles.roles_of(actor_id), action,
            )
            if role is None:
                self._log_denied(workflow, None, action)
                raise NotAuthorizedError(
                    str(workflow_id), None, "actor holds no pending approver role",
                )
            self._guard.check_can_act(workflow, role, action)

            now = self.clock.now()
            updated = self._compare_and_swap(
                workflow, workflow.with_termination(status, now),
            )

            self._ledger.append(
                LedgerEntry(
                    entry_id=uuid4(),
                    project_id=workflow.project_id,
                    actor_id=actor_id,
                    action=ledger_action,
                    notes=notes,
                    created_at=now,
                    workflow_id=workflow_id,
                    actor_role=role,
                )
            )
            self._projects.apply_workflow_status(
                workflow.project_id, project_status, phase, actor_id, now,
            )

            logger.info(
                f"workflow_{status.value}",
                extra={
                    "workflow_id": str(workflow_id),
                    "project_id": str(workflow.project_id),
                    "actor_role": role,
                    "moot_approvers": list(updated.pending_approvers),
                },
            )
            return updated

    # -- internals -----------------------------------------------------

    def _require_active(self, workflow: Workflow) -> None:
        if workflow.is_terminal:
            raise WorkflowTerminalError(str(workflow.workflow_id), workflow.status.value)

    def _compare_and_swap(self, before: Workflow, after: Workflow) -> Workflow:
        result = self.session.execute(
            update(ApprovalWorkflowModel)
            .where(
                ApprovalWorkflowModel.id == before.workflow_id,
                ApprovalWorkflowModel.revision == before.revision,
            )
            .values(
                completed_approvers=list(after.completed_approvers),
                pending_approvers=list(after.pending_approvers),
                workflow_status=after.status.value,
                current_step=after.current_step,
                completed_at=after.completed_at,
                revision=before.revision + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "workflow_revision_conflict",
                extra={
                    "workflow_id": str(before.workflow_id),
                    "expected_revision": before.revision,
                },
            )
            raise ConcurrentModificationError(
                "ApprovalWorkflow", str(before.workflow_id), before.revision,
            )
        return replace(after, revision=before.revision + 1)

    def _log_denied(
        self, workflow: Workflow, actor_role: str | None, action: WorkflowAction,
    ) -> None:
        logger.warning(
            "workflow_action_denied",
            extra={
                "workflow_id": str(workflow.workflow_id),
                "project_id": str(workflow.project_id),
                "actor_role": actor_role,
                "action": action.value,
                "pending_approvers": list(workflow.pending_approvers),
            },
        )
