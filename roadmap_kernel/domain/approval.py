"""
Approval domain types (``roadmap_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the budget approval workflow.  Defines the
workflow lifecycle state machine, threshold tiers, the workflow
snapshot with its pure transition methods, and approval ledger entries.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* WF-1: Lifecycle state machine -- ``WORKFLOW_TRANSITIONS`` defines the
  only valid status transitions.  Terminal states have no outgoing edges.
* WF-2: Approver partition -- ``completed ∪ pending == required`` and
  ``completed ∩ pending == ∅`` for every Workflow value ever built.
* WF-3: Role snapshot -- ``required_approvers`` and ``sequential`` are
  copied from the tier at creation and never re-read from configuration.
* WF-4: Pending order -- ``pending_approvers`` keeps the original
  required-list order, so ``next_role`` is always the first pending role.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from uuid import UUID

from roadmap_kernel.domain.project import Project


# =========================================================================
# Workflow Status Lifecycle (WF-1)
# =========================================================================


class WorkflowStatus(str, Enum):
    """Approval workflow lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"


WORKFLOW_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.PENDING: frozenset({
        WorkflowStatus.IN_PROGRESS,
        WorkflowStatus.APPROVED,
        WorkflowStatus.REJECTED,
        WorkflowStatus.REVISION_REQUESTED,
    }),
    WorkflowStatus.IN_PROGRESS: frozenset({
        WorkflowStatus.IN_PROGRESS,
        WorkflowStatus.APPROVED,
        WorkflowStatus.REJECTED,
        WorkflowStatus.REVISION_REQUESTED,
    }),
    WorkflowStatus.APPROVED: frozenset(),
    WorkflowStatus.REJECTED: frozenset(),
    WorkflowStatus.REVISION_REQUESTED: frozenset(),
}

TERMINAL_WORKFLOW_STATUSES: frozenset[WorkflowStatus] = frozenset({
    WorkflowStatus.APPROVED,
    WorkflowStatus.REJECTED,
    WorkflowStatus.REVISION_REQUESTED,
})

ACTIVE_WORKFLOW_STATUSES: frozenset[WorkflowStatus] = frozenset({
    WorkflowStatus.PENDING,
    WorkflowStatus.IN_PROGRESS,
})


class WorkflowAction(str, Enum):
    """Actions an approver can take against a workflow."""

    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"


class LedgerAction(str, Enum):
    """Kinds of entries recorded in the approval ledger."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"


# =========================================================================
# Threshold Tiers
# =========================================================================


@dataclass(frozen=True)
class ThresholdTier:
    """An amount range and the approver roles it requires.

    ``min_amount`` is inclusive; ``max_amount`` is exclusive, and None
    marks the open-ended top tier.
    """

    tier_name: str
    min_amount: Decimal
    max_amount: Decimal | None
    required_roles: tuple[str, ...]
    sequential: bool = True
    sla_hours: int = 24
    approval_order: int = 0

    def contains(self, amount: Decimal) -> bool:
        if amount < self.min_amount:
            return False
        return self.max_amount is None or amount < self.max_amount


# =========================================================================
# Workflow (WF-2, WF-3, WF-4)
# =========================================================================


@dataclass(frozen=True)
class Workflow:
    """Immutable snapshot of one approval workflow instance.

    Transition methods return a new Workflow; the stored row is only
    replaced through the engine's compare-and-swap on ``revision``.
    """

    workflow_id: UUID
    project_id: UUID
    tier_name: str
    required_approvers: tuple[str, ...]
    completed_approvers: tuple[str, ...]
    pending_approvers: tuple[str, ...]
    sequential: bool
    status: WorkflowStatus
    current_step: int
    total_steps: int
    submitted_at: datetime
    sla_deadline: datetime
    completed_at: datetime | None = None
    cycle: int = 1
    revision: int = 0

    @classmethod
    def open(
        cls,
        workflow_id: UUID,
        project_id: UUID,
        tier: ThresholdTier,
        submitted_at: datetime,
        cycle: int = 1,
    ) -> Workflow:
        """Seed a fresh workflow from a resolved tier."""
        roles = tuple(tier.required_roles)
        return cls(
            workflow_id=workflow_id,
            project_id=project_id,
            tier_name=tier.tier_name,
            required_approvers=roles,
            completed_approvers=(),
            pending_approvers=roles,
            sequential=tier.sequential,
            status=WorkflowStatus.PENDING,
            current_step=1,
            total_steps=len(roles),
            submitted_at=submitted_at,
            sla_deadline=submitted_at + timedelta(hours=tier.sla_hours),
            cycle=cycle,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_WORKFLOW_STATUSES

    @property
    def next_role(self) -> str | None:
        """First role still pending in the original order."""
        return self.pending_approvers[0] if self.pending_approvers else None

    def awaits(self, role: str) -> bool:
        """True when ``role`` may approve right now."""
        if self.is_terminal or role not in self.pending_approvers:
            return False
        return not self.sequential or role == self.next_role

    def is_overdue(self, as_of: datetime) -> bool:
        """SLA breach is a reportable fact, never a blocking condition."""
        if self.is_terminal:
            return self.completed_at is not None and self.completed_at > self.sla_deadline
        return as_of > self.sla_deadline

    def with_approval(self, role: str, at: datetime) -> Workflow:
        """Move ``role`` from pending to completed.

        Callers must have authorized the role first; this method only
        guards the partition invariant.
        """
        if role not in self.pending_approvers:
            raise ValueError(f"Role {role!r} is not pending on {self.workflow_id}")
        completed = self.completed_approvers + (role,)
        pending = tuple(r for r in self.pending_approvers if r != role)
        if pending:
            status = WorkflowStatus.IN_PROGRESS
            completed_at = None
        else:
            status = WorkflowStatus.APPROVED
            completed_at = at
        self._check_transition(status)
        return replace(
            self,
            completed_approvers=completed,
            pending_approvers=pending,
            status=status,
            current_step=min(self.current_step + 1, self.total_steps),
            completed_at=completed_at,
        )

    def with_termination(self, status: WorkflowStatus, at: datetime) -> Workflow:
        """Close the workflow as rejected or revision-requested.

        Remaining pending approvers stay pending: they become moot, never
        completed.
        """
        if status not in (WorkflowStatus.REJECTED, WorkflowStatus.REVISION_REQUESTED):
            raise ValueError(f"{status.value} is not a termination status")
        self._check_transition(status)
        return replace(self, status=status, completed_at=at)

    def _check_transition(self, new_status: WorkflowStatus) -> None:
        allowed = WORKFLOW_TRANSITIONS.get(self.status, frozenset())
        if new_status not in allowed:
            raise ValueError(
                f"Illegal workflow transition {self.status.value} -> {new_status.value}"
            )


# =========================================================================
# Ledger and read-side records
# =========================================================================


@dataclass(frozen=True)
class LedgerEntry:
    """One immutable action recorded against a project."""

    entry_id: UUID
    project_id: UUID
    actor_id: UUID
    action: LedgerAction
    notes: str = ""
    created_at: datetime | None = None
    workflow_id: UUID | None = None
    actor_role: str | None = None
    seq: int = 0


@dataclass(frozen=True)
class PendingApproval:
    """A project waiting on a role, paired with its active workflow."""

    project: Project
    workflow: Workflow
    can_approve_now: bool = True
