"""
Module: roadmap_kernel.models.version
Responsibility: ORM persistence for immutable project version snapshots.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    VS-1 -- Immutable: ORM listeners reject UPDATE and DELETE.
    VS-2 -- Unique numbering: UNIQUE(project_id, version_number).
    VS-3 -- Tamper evidence: ``snapshot_hash`` is the SHA-256 of the
            canonical JSON snapshot, written once.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_kernel.db.base import Base, UUIDString
from roadmap_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from roadmap_kernel.domain.project import ProjectVersion


class ProjectVersionModel(Base):
    """Persistent project version snapshot. Write-once."""

    __tablename__ = "roadmap_versions"

    __table_args__ = (
        UniqueConstraint(
            "project_id", "version_number",
            name="uq_roadmap_versions_number",
        ),
        CheckConstraint("version_number >= 1", name="ck_roadmap_versions_positive"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("roadmap_projects.id"),
        nullable=False,
    )
    version_number: Mapped[int] = mapped_column(nullable=False)
    snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    snapshot_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    author_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<ProjectVersion {self.project_id} v{self.version_number}>"

    def to_dto(self) -> ProjectVersion:
        """Convert ORM model to frozen domain DTO."""
        from roadmap_kernel.domain.project import ProjectVersion

        return ProjectVersion(
            version_id=self.id,
            project_id=self.project_id,
            version_number=self.version_number,
            snapshot=dict(self.snapshot),
            snapshot_hash=self.snapshot_hash,
            author_id=self.author_id,
            created_at=self.created_at,
        )


@event.listens_for(ProjectVersionModel, "before_update")
def prevent_version_update(mapper, connection, target):
    """Prevent updates to version snapshots."""
    raise ImmutabilityViolationError(
        entity_type="ProjectVersion",
        entity_id=str(target.id),
        reason="Project versions are immutable -- cannot modify",
    )


@event.listens_for(ProjectVersionModel, "before_delete")
def prevent_version_delete(mapper, connection, target):
    """Prevent deletion of version snapshots."""
    raise ImmutabilityViolationError(
        entity_type="ProjectVersion",
        entity_id=str(target.id),
        reason="Project versions are immutable -- cannot delete",
    )
