"""
End-to-end tests for BudgetApprovalService.

Each call runs in its own committed transaction, so these tests observe
exactly what an approvals inbox or audit view would.

Covers:
- Reference scenarios: single-approver tier, three-role sequential tier
- Rejection and revision round trips
- Approvals inbox: oldest first, waiting roles flagged by can_approve_now
- Administration: tier seeding and role grants run as retried operations
- Ledger (newest first) and version history (ascending)
- Atomicity: a failure mid-action leaves no partial state
- Concurrency retry policy
- SLA breach report
"""

from uuid import uuid4

import pytest

from roadmap_config.schema import ApprovalConfiguration, ApprovalSettings
from roadmap_kernel.domain.approval import LedgerAction, WorkflowStatus
from roadmap_kernel.domain.project import ProjectStatus
from roadmap_kernel.exceptions import (
    ConcurrentModificationError,
    MissingJustificationError,
    OutOfSequenceError,
    ProjectNotFoundError,
    WorkflowNotFoundError,
    WorkflowTerminalError,
)
from roadmap_kernel.services.ledger_service import ApprovalLedger
from roadmap_kernel.services.workflow_service import WorkflowEngine
from roadmap_services.approval_service import BudgetApprovalService
from roadmap_services.role_directory import SqlRoleDirectory

from tests.conftest import CEO, CONTROLLER, MANAGER


# =========================================================================
# Reference scenarios
# =========================================================================


class TestReferenceScenarios:
    def test_single_approver_tier(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project("10000")

        wf = approval_service.get_workflow(project_id)
        assert wf.total_steps == 1
        assert wf.pending_approvers == (MANAGER,)

        done = approval_service.approve_project(project_id, service_actors.manager, MANAGER)

        assert done.status is WorkflowStatus.APPROVED
        assert approval_service.get_project(project_id).status is ProjectStatus.APPROVED

    def test_three_role_sequential_tier(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project("200000")

        with pytest.raises(OutOfSequenceError):
            approval_service.approve_project(project_id, service_actors.controller, CONTROLLER)

        approval_service.approve_project(project_id, service_actors.manager, MANAGER)
        approval_service.approve_project(project_id, service_actors.controller, CONTROLLER)
        done = approval_service.approve_project(project_id, service_actors.ceo, CEO)

        assert done.status is WorkflowStatus.APPROVED
        assert done.completed_approvers == (MANAGER, CONTROLLER, CEO)
        assert approval_service.get_project(project_id).status is ProjectStatus.APPROVED

    def test_out_of_sequence_changes_nothing(
        self, approval_service, service_actors, submitted_project,
    ):
        project_id = submitted_project("200000")
        before = approval_service.get_workflow(project_id)

        with pytest.raises(OutOfSequenceError):
            approval_service.approve_project(project_id, service_actors.ceo, CEO)

        assert approval_service.get_workflow(project_id) == before
        assert len(approval_service.get_ledger(project_id)) == 1


# =========================================================================
# Rejection / revision
# =========================================================================


class TestRejectAndRevise:
    def test_reject_mid_chain(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project("200000")
        approval_service.approve_project(project_id, service_actors.manager, MANAGER)

        wf = approval_service.reject_project(project_id, service_actors.ceo, "Not in plan")

        assert wf.status is WorkflowStatus.REJECTED
        assert wf.completed_approvers == (MANAGER,)
        assert approval_service.get_project(project_id).status is ProjectStatus.REJECTED

    def test_reject_without_notes(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project()

        with pytest.raises(MissingJustificationError):
            approval_service.reject_project(project_id, service_actors.manager, "")

        assert approval_service.get_project(project_id).status is ProjectStatus.PENDING_APPROVAL
        assert approval_service.get_workflow(project_id).status is WorkflowStatus.PENDING

    def test_revision_round_trip(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project()
        approval_service.request_revision(project_id, service_actors.manager, "Split phases")
        assert approval_service.get_project(project_id).status is ProjectStatus.DRAFT

        approval_service.update_project(
            project_id, {"description": "Two phases"}, service_actors.owner,
        )
        approval_service.submit_for_approval(project_id, service_actors.owner)
        approval_service.approve_project(project_id, service_actors.manager, MANAGER)

        history = approval_service.get_workflow_history(project_id)
        assert [w.status for w in history] == [
            WorkflowStatus.REVISION_REQUESTED, WorkflowStatus.APPROVED,
        ]
        assert [w.cycle for w in history] == [1, 2]

    def test_terminal_action_refused(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project()
        approval_service.approve_project(project_id, service_actors.manager, MANAGER)
        ledger_before = approval_service.get_ledger(project_id)

        with pytest.raises(WorkflowTerminalError):
            approval_service.reject_project(project_id, service_actors.manager, "too late")

        assert approval_service.get_ledger(project_id) == ledger_before

    def test_unsubmitted_project_has_no_workflow(self, approval_service, service_actors):
        project = approval_service.create_project({"header": "Idea"}, service_actors.owner)

        assert approval_service.get_workflow(project.project_id) is None
        with pytest.raises(WorkflowNotFoundError):
            approval_service.approve_project(project.project_id, service_actors.manager, MANAGER)

    def test_unknown_project(self, approval_service, service_actors):
        with pytest.raises(ProjectNotFoundError):
            approval_service.submit_for_approval(uuid4(), service_actors.owner)


# =========================================================================
# Read side
# =========================================================================


class TestPendingForRole:
    def test_oldest_first(self, approval_service, submitted_project, deterministic_clock):
        first = submitted_project("1000")
        deterministic_clock.advance_hours(1)
        second = submitted_project("2000")

        pending = approval_service.get_pending_approvals_for_role(MANAGER)
        assert [p.project.project_id for p in pending] == [first, second]

    def test_later_roles_see_sequential_project(
        self, approval_service, service_actors, submitted_project,
    ):
        project_id = submitted_project("200000")

        [waiting] = approval_service.get_pending_approvals_for_role(CONTROLLER)
        assert waiting.project.project_id == project_id
        assert waiting.can_approve_now is False
        [first] = approval_service.get_pending_approvals_for_role(MANAGER)
        assert first.can_approve_now is True

        approval_service.approve_project(project_id, service_actors.manager, MANAGER)

        [item] = approval_service.get_pending_approvals_for_role(CONTROLLER)
        assert item.workflow.next_role == CONTROLLER
        assert item.can_approve_now is True
        [ceo_item] = approval_service.get_pending_approvals_for_role(CEO)
        assert ceo_item.can_approve_now is False
        assert approval_service.get_pending_approvals_for_role(MANAGER) == []

    def test_waiting_role_can_reject_from_inbox(
        self, approval_service, service_actors, submitted_project,
    ):
        project_id = submitted_project("200000")
        [item] = approval_service.get_pending_approvals_for_role(CEO)

        approval_service.reject_project(
            item.project.project_id, service_actors.ceo, "Not this year",
        )

        assert approval_service.get_project(project_id).status is ProjectStatus.REJECTED
        assert approval_service.get_pending_approvals_for_role(CEO) == []

    def test_closed_workflows_drop_out(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project()
        approval_service.reject_project(project_id, service_actors.manager, "no")

        assert approval_service.get_pending_approvals_for_role(MANAGER) == []


class TestLedgerAndVersions:
    def test_ledger_newest_first(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project("200000")
        approval_service.approve_project(project_id, service_actors.manager, MANAGER, "ok")
        approval_service.reject_project(project_id, service_actors.controller, "Over cap")

        entries = approval_service.get_ledger(project_id)
        assert [e.action for e in entries] == [
            LedgerAction.REJECTED, LedgerAction.APPROVED, LedgerAction.SUBMITTED,
        ]
        assert entries[0].actor_role == CONTROLLER
        assert entries[1].notes == "ok"

    def test_every_project_write_is_versioned(
        self, approval_service, service_actors, submitted_project,
    ):
        project_id = submitted_project()
        approval_service.approve_project(project_id, service_actors.manager, MANAGER)

        versions = approval_service.get_versions(project_id)
        assert [v.version_number for v in versions] == [1, 2, 3]
        assert [v.snapshot["status"] for v in versions] == [
            "Draft", "Pending Approval", "Approved",
        ]
        assert approval_service.get_project(project_id).version == 3


# =========================================================================
# Atomicity
# =========================================================================


class TestAtomicity:
    def test_ledger_failure_rolls_back_approval(
        self, approval_service, service_actors, submitted_project, monkeypatch,
    ):
        project_id = submitted_project()

        def _broken_append(self, entry):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(ApprovalLedger, "append", _broken_append)
        with pytest.raises(RuntimeError):
            approval_service.approve_project(project_id, service_actors.manager, MANAGER)
        monkeypatch.undo()

        wf = approval_service.get_workflow(project_id)
        assert wf.status is WorkflowStatus.PENDING
        assert wf.revision == 0
        assert approval_service.get_project(project_id).status is ProjectStatus.PENDING_APPROVAL
        assert len(approval_service.get_ledger(project_id)) == 1


# =========================================================================
# Concurrency retry policy
# =========================================================================


class TestRetryPolicy:
    def test_lost_race_is_retried(
        self, approval_service, service_actors, submitted_project, monkeypatch, captured_logs,
    ):
        project_id = submitted_project()
        original = WorkflowEngine.approve
        calls = []

        def _flaky(self, workflow_id, *args, **kwargs):
            calls.append(workflow_id)
            if len(calls) == 1:
                raise ConcurrentModificationError("ApprovalWorkflow", str(workflow_id), 0)
            return original(self, workflow_id, *args, **kwargs)

        monkeypatch.setattr(WorkflowEngine, "approve", _flaky)
        done = approval_service.approve_project(project_id, service_actors.manager, MANAGER)

        assert done.status is WorkflowStatus.APPROVED
        assert len(calls) == 2
        assert any(r["message"] == "concurrency_retry" for r in captured_logs())

    def test_retries_exhausted(
        self, session_factory, approval_config, deterministic_clock, monkeypatch, captured_logs,
    ):
        config = ApprovalConfiguration(
            config_id="no-retry",
            version=1,
            tiers=approval_config.tiers,
            settings=ApprovalSettings(max_concurrency_retries=1),
        )
        service = BudgetApprovalService(session_factory, config, deterministic_clock)
        service.seed_tiers()
        owner = uuid4()
        project = service.create_project({"header": "x"}, owner)
        attempts = []

        def _always_stale(self, project_id, actor_id):
            attempts.append(project_id)
            raise ConcurrentModificationError("Project", str(project_id), 1)

        monkeypatch.setattr(WorkflowEngine, "submit", _always_stale)
        with pytest.raises(ConcurrentModificationError):
            service.submit_for_approval(project.project_id, owner)

        assert len(attempts) == 2
        assert any(r["message"] == "concurrency_retries_exhausted" for r in captured_logs())

    def test_other_errors_not_retried(
        self, approval_service, service_actors, submitted_project, monkeypatch,
    ):
        project_id = submitted_project("200000")
        original = WorkflowEngine.approve
        calls = []

        def _counting(self, *args, **kwargs):
            calls.append(args)
            return original(self, *args, **kwargs)

        monkeypatch.setattr(WorkflowEngine, "approve", _counting)
        with pytest.raises(OutOfSequenceError):
            approval_service.approve_project(project_id, service_actors.ceo, CEO)
        assert len(calls) == 1


# =========================================================================
# SLA breach report
# =========================================================================


class TestOverdue:
    def test_open_workflow_past_deadline(
        self, approval_service, submitted_project, deterministic_clock,
    ):
        project_id = submitted_project()
        assert approval_service.get_overdue_workflows() == []

        deterministic_clock.advance_hours(25)

        [late] = approval_service.get_overdue_workflows()
        assert late.project_id == project_id

    def test_late_completion_stays_reported(
        self, approval_service, service_actors, submitted_project, deterministic_clock,
    ):
        project_id = submitted_project()
        deterministic_clock.advance_hours(30)
        approval_service.approve_project(project_id, service_actors.manager, MANAGER)

        overdue = approval_service.get_overdue_workflows()
        assert [w.project_id for w in overdue] == [project_id]
        assert overdue[0].status is WorkflowStatus.APPROVED

    def test_on_time_completion_not_reported(
        self, approval_service, service_actors, submitted_project, deterministic_clock,
    ):
        project_id = submitted_project()
        deterministic_clock.advance_hours(1)
        approval_service.approve_project(project_id, service_actors.manager, MANAGER)
        deterministic_clock.advance_hours(100)

        assert approval_service.get_overdue_workflows() == []


class TestAdministration:
    def test_seed_is_idempotent(self, approval_service):
        assert approval_service.seed_tiers() is False
        assert [t.tier_name for t in approval_service.list_tiers()] == ["Standard", "Executive"]

    def test_completed_after_approval(self, approval_service, service_actors, submitted_project):
        project_id = submitted_project()
        approval_service.approve_project(project_id, service_actors.manager, MANAGER)

        done = approval_service.mark_completed(project_id, service_actors.owner)
        assert done.status is ProjectStatus.COMPLETED

    def test_role_grant_retried_on_conflict(self, approval_service, monkeypatch, captured_logs):
        original = SqlRoleDirectory.assign_role
        calls = []

        def _flaky(self, user_id, role_type, **kwargs):
            calls.append(user_id)
            if len(calls) == 1:
                raise ConcurrentModificationError("UserRole", str(user_id), 0)
            return original(self, user_id, role_type, **kwargs)

        monkeypatch.setattr(SqlRoleDirectory, "assign_role", _flaky)
        user = uuid4()
        grant = approval_service.assign_role(user, CEO)

        assert grant.role_type == CEO
        assert len(calls) == 2
        [retry] = [r for r in captured_logs() if r["message"] == "concurrency_retry"]
        assert retry["operation"] == "assign_role"
        assert retry["entity_type"] == "UserRole"

    def test_seed_runs_as_named_operation(
        self, session_factory, approval_config, deterministic_clock, captured_logs,
    ):
        service = BudgetApprovalService(
            session_factory=session_factory, config=approval_config, clock=deterministic_clock,
        )
        assert service.seed_tiers() is True

        seeded = [r for r in captured_logs() if r.get("operation") == "seed_tiers"]
        assert seeded
        assert all("correlation_id" in r for r in seeded)
