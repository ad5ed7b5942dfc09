"""
roadmap_engines.authorization -- Pure workflow action eligibility.

Responsibility:
    Decide whether a role may approve, reject or request revision on a
    workflow, and which of a multi-role actor's roles to act under.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Rules:
    - Approve: the role is pending and, under a sequential tier, is the
      first pending role in the original required order.
    - Reject / request revision: any pending role, regardless of
      sequence position.
    - Terminal workflows admit no action.

Role membership (does the actor hold the role at all) is the caller's
concern, answered by the role directory.
"""

from __future__ import annotations

from collections.abc import Iterable

from roadmap_kernel.domain.approval import Workflow, WorkflowAction
from roadmap_kernel.exceptions import (
    NotAuthorizedError,
    OutOfSequenceError,
    WorkflowTerminalError,
)


def can_act(workflow: Workflow, actor_role: str, action: WorkflowAction) -> bool:
    """Pure eligibility predicate."""
    if workflow.is_terminal or actor_role not in workflow.pending_approvers:
        return False
    if action is WorkflowAction.APPROVE:
        return workflow.awaits(actor_role)
    return True


def check_can_act(workflow: Workflow, actor_role: str, action: WorkflowAction) -> None:
    """Raise the specific error explaining why ``can_act`` is False."""
    workflow_id = str(workflow.workflow_id)
    if workflow.is_terminal:
        raise WorkflowTerminalError(workflow_id, workflow.status.value)
    if actor_role not in workflow.pending_approvers:
        reason = (
            "role already approved"
            if actor_role in workflow.completed_approvers
            else "role is not a pending approver"
        )
        raise NotAuthorizedError(workflow_id, actor_role, reason)
    if action is WorkflowAction.APPROVE and not workflow.awaits(actor_role):
        raise OutOfSequenceError(workflow_id, actor_role, workflow.next_role or "")


def acting_role_for(
    workflow: Workflow,
    roles: Iterable[str],
    action: WorkflowAction,
) -> str | None:
    """
    First pending role (in required order) that ``roles`` contains and
    that may take ``action``; None when the actor holds none.
    """
    held = set(roles)
    for role in workflow.pending_approvers:
        if role in held and can_act(workflow, role, action):
            return role
    return None


class AuthorizationGuard:
    """Object form of the module functions, for injection into the engine."""

    can_act = staticmethod(can_act)
    check_can_act = staticmethod(check_can_act)
    acting_role_for = staticmethod(acting_role_for)
