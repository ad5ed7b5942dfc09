"""
Concurrent approval and submission races.

Expected behavior:
- Two approvals of the same single-approver workflow: exactly one wins.
  The loser sees WorkflowTerminalError (it read the closed workflow) or
  ConcurrentModificationError (it lost the compare-and-swap after its
  retries ran out).  The role is recorded as completed exactly once.
- Two submissions of the same project: exactly one workflow is opened.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

from roadmap_kernel.domain.approval import LedgerAction, WorkflowStatus
from roadmap_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateWorkflowError,
    InvalidProjectStateError,
    WorkflowTerminalError,
)

from tests.conftest import MANAGER


def _race(n: int, fn):
    """Run ``fn`` on ``n`` threads released together; return results/errors."""
    barrier = Barrier(n)

    def _run():
        barrier.wait()
        try:
            return fn()
        except Exception as exc:  # collected for assertions
            return exc

    with ThreadPoolExecutor(max_workers=n) as pool:
        futures = [pool.submit(_run) for _ in range(n)]
        return [f.result() for f in futures]


class TestDuplicateApprove:
    def test_exactly_one_approval_wins(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project("10000")

        outcomes = _race(
            2,
            lambda: approval_service.approve_project(project_id, service_actors.manager, MANAGER),
        )

        wins = [o for o in outcomes if not isinstance(o, Exception)]
        losses = [o for o in outcomes if isinstance(o, Exception)]
        assert len(wins) == 1
        assert len(losses) == 1
        assert isinstance(losses[0], (WorkflowTerminalError, ConcurrentModificationError))

        wf = approval_service.get_workflow(project_id)
        assert wf.status is WorkflowStatus.APPROVED
        assert wf.completed_approvers.count(MANAGER) == 1
        assert wf.pending_approvers == ()

        approvals = [
            e for e in approval_service.get_ledger(project_id)
            if e.action is LedgerAction.APPROVED
        ]
        assert len(approvals) == 1

    def test_project_versions_stay_gap_free(
        self, approval_service, service_actors, submitted_project,
    ):
        project_id = submitted_project("10000")
        _race(
            2,
            lambda: approval_service.approve_project(project_id, service_actors.manager, MANAGER),
        )

        numbers = [v.version_number for v in approval_service.get_versions(project_id)]
        assert numbers == list(range(1, len(numbers) + 1))
        assert approval_service.get_project(project_id).version == numbers[-1]


class TestDuplicateSubmit:
    def test_one_workflow_opened(self, approval_service, service_actors):
        project = approval_service.create_project(
            {"header": "Data platform", "budget_total": "15000"}, service_actors.owner,
        )

        outcomes = _race(
            2,
            lambda: approval_service.submit_for_approval(project.project_id, service_actors.owner),
        )

        losses = [o for o in outcomes if isinstance(o, Exception)]
        assert len(losses) == 1
        assert isinstance(
            losses[0],
            (DuplicateWorkflowError, InvalidProjectStateError, ConcurrentModificationError),
        )
        assert len(approval_service.get_workflow_history(project.project_id)) == 1
