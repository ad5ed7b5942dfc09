"""
ProjectService -- SQL project repository with version snapshots.

Responsibility:
    Creates, reads and writes roadmap projects.  Every write advances the
    project's ``version`` by exactly one and records a snapshot through
    VersionStore.  Status changes come only from workflow transitions,
    apart from the owner's Approved -> Completed step.

Architecture position:
    Kernel > Services.  Implements the ProjectRepository port consumed by
    WorkflowEngine.

Invariants enforced:
    PR-1 -- Gap-free versions: writes compare-and-swap on ``version``
            (``UPDATE ... WHERE id = :id AND version = :read_version``).
    PR-2 -- Status lock: direct status edits raise ProjectLockedError
            unless they move Approved -> Completed.  While the project is
            Pending Approval every caller edit is refused, so the amount a
            workflow was routed on cannot change under it.
    PR-3 -- Version-write policy: under BEST_EFFORT a failed snapshot is
            rolled back to a savepoint and logged at WARNING
            (``version_snapshot_failed``) while the project write stands;
            under STRICT the failure propagates.

Failure modes:
    - ProjectNotFoundError for an unknown id.
    - UnknownProjectFieldError for fields outside the editable set.
    - ConcurrentModificationError when the version CAS matches no row.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roadmap_kernel.domain.clock import Clock
from roadmap_kernel.domain.project import (
    LifecyclePhase,
    Project,
    ProjectScenario,
    ProjectStatus,
    VersionWritePolicy,
)
from roadmap_kernel.exceptions import (
    ConcurrentModificationError,
    ProjectLockedError,
    ProjectNotFoundError,
    RoadmapKernelError,
    UnknownProjectFieldError,
)
from roadmap_kernel.logging_config import get_logger
from roadmap_kernel.models.project import ProjectModel
from roadmap_kernel.services.base import BaseService
from roadmap_kernel.services.version_service import VersionStore

logger = get_logger("services.project")

_AMOUNT_FIELDS = frozenset({
    "budget_total",
    "budget_base_case",
    "budget_best_case",
    "budget_downside_case",
    "actual_total",
})

CREATE_FIELDS = frozenset({"header", "description", "department", "scenario"}) | _AMOUNT_FIELDS

EDITABLE_FIELDS = CREATE_FIELDS | {"status"}


def _coerce(field_name: str, value: Any) -> Any:
    if field_name in _AMOUNT_FIELDS:
        return None if value is None else Decimal(str(value))
    if field_name == "scenario":
        return ProjectScenario(value).value
    if field_name == "status":
        return ProjectStatus(value).value
    return value


class ProjectService(BaseService[ProjectModel]):
    """SQL-backed project repository."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        version_policy: VersionWritePolicy = VersionWritePolicy.BEST_EFFORT,
    ):
        super().__init__(session, clock)
        self.version_policy = version_policy
        self._versions = VersionStore(session, self.clock)

    # -- reads ---------------------------------------------------------

    def _load(self, project_id: UUID) -> ProjectModel:
        model = self.session.execute(
            select(ProjectModel)
            .where(ProjectModel.id == project_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise ProjectNotFoundError(str(project_id))
        return model

    def get(self, project_id: UUID) -> Project:
        return self._load(project_id).to_dto()

    # -- writes --------------------------------------------------------

    def create(self, fields: dict[str, Any], owner_id: UUID) -> Project:
        """Insert a Draft project at version 1 and snapshot it."""
        unknown = sorted(set(fields) - CREATE_FIELDS)
        if unknown:
            raise UnknownProjectFieldError(unknown)

        now = self.clock.now()
        values = {name: _coerce(name, value) for name, value in fields.items()}
        model = ProjectModel(
            id=uuid4(),
            owner_id=owner_id,
            status=ProjectStatus.DRAFT.value,
            lifecycle_phase=LifecyclePhase.DRAFT.value,
            version=1,
            created_at=now,
            updated_at=now,
            created_by_id=owner_id,
            **values,
        )
        self.session.add(model)
        self.session.flush()

        project = model.to_dto()
        logger.info(
            "project_created",
            extra={"project_id": str(project.project_id), "owner_id": str(owner_id)},
        )
        self._record_version(project, owner_id)
        return project

    def update(self, project_id: UUID, fields: dict[str, Any], actor_id: UUID) -> Project:
        """Apply a caller edit; status may only move Approved -> Completed."""
        unknown = sorted(set(fields) - EDITABLE_FIELDS)
        if unknown:
            raise UnknownProjectFieldError(unknown)

        current = self.get(project_id)
        if current.status is ProjectStatus.PENDING_APPROVAL:
            raise ProjectLockedError(
                str(project_id),
                "fields are frozen while the project is pending approval",
            )

        values = {name: _coerce(name, value) for name, value in fields.items()}

        new_status = values.get("status")
        if new_status is not None and new_status != current.status.value:
            if not (
                current.status is ProjectStatus.APPROVED
                and new_status == ProjectStatus.COMPLETED.value
            ):
                raise ProjectLockedError(
                    str(project_id),
                    f"status {current.status.value!r} -> {new_status!r} "
                    "is driven by the approval workflow",
                )

        return self._write(current, values, actor_id, "project_updated")

    def mark_completed(self, project_id: UUID, actor_id: UUID) -> Project:
        return self.update(project_id, {"status": ProjectStatus.COMPLETED}, actor_id)

    def apply_workflow_status(
        self,
        project_id: UUID,
        status: ProjectStatus,
        phase: LifecyclePhase,
        actor_id: UUID,
        at: datetime,
    ) -> Project:
        """Status change driven by a workflow transition."""
        current = self.get(project_id)
        values: dict[str, Any] = {
            "status": status.value,
            "lifecycle_phase": phase.value,
        }
        if status is ProjectStatus.PENDING_APPROVAL:
            values["submitted_at"] = at
        elif status is ProjectStatus.APPROVED:
            values["approved_at"] = at
        return self._write(current, values, actor_id, "project_status_changed")

    def _write(
        self,
        current: Project,
        values: dict[str, Any],
        actor_id: UUID,
        event_name: str,
    ) -> Project:
        read_version = current.version
        result = self.session.execute(
            update(ProjectModel)
            .where(
                ProjectModel.id == current.project_id,
                ProjectModel.version == read_version,
            )
            .values(
                **values,
                version=read_version + 1,
                updated_at=self.clock.now(),
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "project_version_conflict",
                extra={
                    "project_id": str(current.project_id),
                    "expected_version": read_version,
                },
            )
            raise ConcurrentModificationError(
                "Project", str(current.project_id), read_version,
            )

        project = self.get(current.project_id)
        logger.info(
            event_name,
            extra={
                "project_id": str(project.project_id),
                "version": project.version,
                "status": project.status.value,
                "actor_id": str(actor_id),
            },
        )
        self._record_version(project, actor_id)
        return project

    def _record_version(self, project: Project, author_id: UUID) -> None:
        if self.version_policy is VersionWritePolicy.STRICT:
            self._versions.snapshot(
                project.project_id, project.version, project.snapshot(), author_id,
            )
            return

        savepoint = self.session.begin_nested()
        try:
            self._versions.snapshot(
                project.project_id, project.version, project.snapshot(), author_id,
            )
            savepoint.commit()
        except (RoadmapKernelError, SQLAlchemyError):
            savepoint.rollback()
            logger.warning(
                "version_snapshot_failed",
                extra={
                    "project_id": str(project.project_id),
                    "version_number": project.version,
                },
                exc_info=True,
            )
