"""
roadmap_services.approval_service -- Budget approval facade.

Responsibility:
    The exposed API of the approval subsystem: submit, approve, reject,
    request revision, and the read side (approvals inbox, ledger, version
    history, workflow history, SLA breach report).  Also the place where
    project, role and tier administration are reachable from outside.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  Each call
    wires kernel services and engines around one fresh session and runs
    inside one ``session_scope`` transaction.

Invariants enforced:
    - Atomicity: workflow row, ledger entry and project status commit
      together or not at all.
    - Retry policy: ConcurrentModificationError is retried with a fresh
      session up to ``settings.max_concurrency_retries`` times, then
      re-raised to the caller.  No other error is retried.

Failure modes:
    - Every typed RoadmapKernelError from the kernel propagates unchanged.
    - WorkflowNotFoundError when a project has never been submitted.

Usage:
    service = BudgetApprovalService(session_factory=get_session_factory())
    service.seed_tiers()
    workflow = service.submit_for_approval(project_id, owner_id)
    service.approve_project(project_id, manager_id, "Department Manager")
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from roadmap_config import ApprovalConfiguration, get_active_config
from roadmap_engines.authorization import AuthorizationGuard
from roadmap_engines.threshold import ThresholdResolver
from roadmap_kernel.db.engine import session_scope
from roadmap_kernel.domain.approval import (
    LedgerEntry,
    PendingApproval,
    ThresholdTier,
    Workflow,
)
from roadmap_kernel.domain.clock import Clock, SystemClock
from roadmap_kernel.domain.project import Project, ProjectVersion
from roadmap_kernel.exceptions import ConcurrentModificationError, WorkflowNotFoundError
from roadmap_kernel.logging_config import LogContext, get_logger
from roadmap_kernel.selectors.approval_selector import ApprovalSelector
from roadmap_kernel.services.project_service import ProjectService
from roadmap_kernel.services.workflow_service import WorkflowEngine
from roadmap_services.role_directory import RoleAssignment, SqlRoleDirectory
from roadmap_services.tier_store import SqlTierStore

logger = get_logger("services.approval")

T = TypeVar("T")


class ApprovalUnitOfWork:
    """Every collaborator for one transaction, built once around a session.

    Wiring order follows the dependency graph; nothing here constructs its
    own dependencies.
    """

    def __init__(
        self,
        session: Session,
        config: ApprovalConfiguration,
        clock: Clock,
    ) -> None:
        self.session = session
        self.projects = ProjectService(
            session,
            clock,
            version_policy=config.settings.version_write_policy,
        )
        self.roles = SqlRoleDirectory(session)
        self.tiers = SqlTierStore(session)
        self.resolver = ThresholdResolver(self.tiers)
        self.guard = AuthorizationGuard()
        self.engine = WorkflowEngine(
            session,
            projects=self.projects,
            roles=self.roles,
            resolver=self.resolver,
            guard=self.guard,
            clock=clock,
        )
        self.selector = ApprovalSelector(session)

    def workflow_for(self, project_id: UUID) -> Workflow:
        """The project's active workflow, else its latest one."""
        self.projects.get(project_id)
        workflow = self.engine.active_for(project_id) or self.engine.latest_for(project_id)
        if workflow is None:
            raise WorkflowNotFoundError(str(project_id))
        return workflow


class BudgetApprovalService:
    """Budget approval API, one transaction per call."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        config: ApprovalConfiguration | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()

    @property
    def config(self) -> ApprovalConfiguration:
        return self._config

    @contextmanager
    def _unit_of_work(self) -> Iterator[ApprovalUnitOfWork]:
        with session_scope(self._session_factory) as session:
            yield ApprovalUnitOfWork(session, self._config, self._clock)

    def _read(self, fn: Callable[[ApprovalUnitOfWork], T]) -> T:
        with self._unit_of_work() as uow:
            return fn(uow)

    def _write(
        self,
        operation: str,
        project_id: UUID | None,
        actor_id: UUID | None,
        fn: Callable[[ApprovalUnitOfWork], T],
    ) -> T:
        attempts = self._config.settings.max_concurrency_retries + 1
        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            project_id=str(project_id) if project_id else None,
            actor_id=str(actor_id) if actor_id else None,
        ):
            for attempt in range(1, attempts + 1):
                try:
                    with self._unit_of_work() as uow:
                        return fn(uow)
                except ConcurrentModificationError as exc:
                    if attempt >= attempts:
                        logger.error(
                            "concurrency_retries_exhausted",
                            extra={"attempts": attempt},
                        )
                        raise
                    logger.warning(
                        "concurrency_retry",
                        extra={
                            "attempt": attempt,
                            "entity_type": exc.entity_type,
                            "entity_id": exc.entity_id,
                        },
                    )
        raise AssertionError("unreachable")

    # -- workflow actions ---------------------------------------------

    def submit_for_approval(self, project_id: UUID, actor_id: UUID) -> Workflow:
        return self._write(
            "submit_for_approval",
            project_id,
            actor_id,
            lambda uow: uow.engine.submit(project_id, actor_id),
        )

    def approve_project(
        self,
        project_id: UUID,
        actor_id: UUID,
        actor_role: str,
        notes: str = "",
    ) -> Workflow:
        return self._write(
            "approve_project",
            project_id,
            actor_id,
            lambda uow: uow.engine.approve(
                uow.workflow_for(project_id).workflow_id, actor_role, actor_id, notes,
            ),
        )

    def reject_project(self, project_id: UUID, actor_id: UUID, notes: str) -> Workflow:
        return self._write(
            "reject_project",
            project_id,
            actor_id,
            lambda uow: uow.engine.reject(
                uow.workflow_for(project_id).workflow_id, actor_id, notes,
            ),
        )

    def request_revision(self, project_id: UUID, actor_id: UUID, notes: str) -> Workflow:
        return self._write(
            "request_revision",
            project_id,
            actor_id,
            lambda uow: uow.engine.request_revision(
                uow.workflow_for(project_id).workflow_id, actor_id, notes,
            ),
        )

    # -- read side ------------------------------------------------------

    def get_pending_approvals_for_role(self, actor_role: str) -> list[PendingApproval]:
        return self._read(lambda uow: uow.selector.pending_for_role(actor_role))

    def get_ledger(self, project_id: UUID) -> list[LedgerEntry]:
        return self._read(lambda uow: uow.selector.ledger(project_id))

    def get_versions(self, project_id: UUID) -> list[ProjectVersion]:
        return self._read(lambda uow: uow.selector.versions(project_id))

    def get_workflow(self, project_id: UUID) -> Workflow | None:
        return self._read(lambda uow: uow.selector.current_workflow(project_id))

    def get_workflow_history(self, project_id: UUID) -> list[Workflow]:
        return self._read(lambda uow: uow.selector.workflow_history(project_id))

    def get_overdue_workflows(self, as_of: datetime | None = None) -> list[Workflow]:
        at = as_of or self._clock.now()
        return self._read(lambda uow: uow.selector.overdue(at))

    # -- projects -------------------------------------------------------

    def create_project(self, fields: dict[str, Any], owner_id: UUID) -> Project:
        return self._write(
            "create_project", None, owner_id,
            lambda uow: uow.projects.create(fields, owner_id),
        )

    def update_project(
        self, project_id: UUID, fields: dict[str, Any], actor_id: UUID,
    ) -> Project:
        return self._write(
            "update_project", project_id, actor_id,
            lambda uow: uow.projects.update(project_id, fields, actor_id),
        )

    def mark_completed(self, project_id: UUID, actor_id: UUID) -> Project:
        return self._write(
            "mark_completed", project_id, actor_id,
            lambda uow: uow.projects.mark_completed(project_id, actor_id),
        )

    def get_project(self, project_id: UUID) -> Project:
        return self._read(lambda uow: uow.projects.get(project_id))

    # -- administration -------------------------------------------------

    def seed_tiers(self) -> bool:
        """Copy the configured tier table into an empty tier store."""
        return self._write(
            "seed_tiers", None, None,
            lambda uow: uow.tiers.seed(self._config.threshold_tiers()),
        )

    def list_tiers(self) -> list[ThresholdTier]:
        return self._read(lambda uow: uow.tiers.list_tiers())

    def assign_role(
        self,
        user_id: UUID,
        role_type: str,
        department: str | None = None,
        spending_authority_limit: Decimal | None = None,
        can_approve_projects: bool = True,
    ) -> RoleAssignment:
        return self._write(
            "assign_role", None, None,
            lambda uow: uow.roles.assign_role(
                user_id,
                role_type,
                department=department,
                spending_authority_limit=spending_authority_limit,
                can_approve_projects=can_approve_projects,
            ),
        )
