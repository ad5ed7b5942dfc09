"""
VersionStore -- immutable per-project version snapshots.

Responsibility:
    Stores a full JSON snapshot of a project each time it is written,
    keyed by the project's version number, with a SHA-256 of the
    canonical snapshot for tamper evidence.

Architecture position:
    Kernel > Services.  Called by ProjectService after every project
    write.  Whether a snapshot failure aborts the write is decided by the
    caller's VersionWritePolicy, not here.

Invariants enforced:
    VS-1 -- Immutable: no update or delete is exposed; ORM listeners on
            ProjectVersionModel reject both.
    VS-2 -- Increasing: ``version_number`` must be >= 1 and greater than
            every stored version of the project.  Gap-free numbering is
            owned by the project's ``version`` counter.
    VS-3 -- Tamper evidence: ``verify`` recomputes the snapshot hash.

Failure modes:
    - VersionSequenceError on a non-increasing version number.
    - IntegrityError on a concurrent duplicate (unique constraint).
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from roadmap_kernel.domain.clock import Clock
from roadmap_kernel.domain.project import ProjectVersion
from roadmap_kernel.exceptions import VersionSequenceError
from roadmap_kernel.logging_config import get_logger
from roadmap_kernel.models.version import ProjectVersionModel
from roadmap_kernel.selectors.approval_selector import ApprovalSelector
from roadmap_kernel.services.base import BaseService
from roadmap_kernel.utils.hashing import state_digest

logger = get_logger("services.version")


class VersionStore(BaseService[ProjectVersionModel]):
    """Write-once project snapshots."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def last_version(self, project_id: UUID) -> int:
        """Highest stored version number for the project, 0 if none."""
        value = self.session.execute(
            select(func.max(ProjectVersionModel.version_number))
            .where(ProjectVersionModel.project_id == project_id)
        ).scalar_one_or_none()
        return int(value) if value is not None else 0

    def snapshot(
        self,
        project_id: UUID,
        version_number: int,
        full_state: dict[str, Any],
        author_id: UUID | None,
    ) -> ProjectVersion:
        """
        Record ``full_state`` as version ``version_number`` of the project.

        Raises:
            VersionSequenceError: version_number < 1 or not greater than
                the last stored version.
        """
        last = self.last_version(project_id)
        if version_number < 1 or version_number <= last:
            raise VersionSequenceError(str(project_id), version_number, last)

        snapshot_hash = state_digest(full_state)
        model = ProjectVersionModel(
            id=uuid4(),
            project_id=project_id,
            version_number=version_number,
            snapshot=full_state,
            snapshot_hash=snapshot_hash,
            author_id=author_id,
            created_at=self.clock.now(),
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "version_snapshot_created",
            extra={
                "project_id": str(project_id),
                "version_number": version_number,
                "snapshot_hash": snapshot_hash,
            },
        )
        return model.to_dto()

    def list_for(self, project_id: UUID) -> list[ProjectVersion]:
        """All versions of a project, ascending."""
        return ApprovalSelector(self.session).versions(project_id)

    @staticmethod
    def verify(version: ProjectVersion) -> bool:
        """True when the stored snapshot still matches its hash."""
        return state_digest(version.snapshot) == version.snapshot_hash
