"""
Module: roadmap_kernel.models.ledger
Responsibility: ORM persistence for the approval ledger (append-only).

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    LG-1 -- Append-only: ORM listeners reject UPDATE and DELETE.
    LG-2 -- Total order: ``seq`` is allocated from a locked counter row
            and is unique, so entries sharing a timestamp still order by
            insertion.

Failure modes:
    - ImmutabilityViolationError on UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_kernel.db.base import Base, UUIDString
from roadmap_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from roadmap_kernel.domain.approval import LedgerEntry


class ApprovalLedgerEntryModel(Base):
    """Persistent approval ledger entry. Append-only."""

    __tablename__ = "roadmap_approvals"

    __table_args__ = (
        CheckConstraint(
            "action IN ('submitted', 'approved', 'rejected', 'revision_requested')",
            name="ck_roadmap_approvals_valid_action",
        ),
        Index("ix_roadmap_approvals_project_time", "project_id", "created_at", "seq"),
    )

    project_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    workflow_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_role: Mapped[str | None] = mapped_column(String(100), nullable=True)
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    seq: Mapped[int] = mapped_column(nullable=False, unique=True)

    def __repr__(self) -> str:
        return (
            f"<ApprovalLedgerEntry #{self.seq} project={self.project_id} "
            f"action={self.action}>"
        )

    def to_dto(self) -> LedgerEntry:
        """Convert ORM model to frozen domain DTO."""
        from roadmap_kernel.domain.approval import LedgerAction, LedgerEntry

        return LedgerEntry(
            entry_id=self.id,
            project_id=self.project_id,
            actor_id=self.actor_id,
            action=LedgerAction(self.action),
            notes=self.notes,
            created_at=self.created_at,
            workflow_id=self.workflow_id,
            actor_role=self.actor_role,
            seq=self.seq,
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(ApprovalLedgerEntryModel, "before_update")
def prevent_ledger_update(mapper, connection, target):
    """Prevent updates to approval ledger entries."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalLedgerEntry",
        entity_id=str(target.id),
        reason="Ledger entries are immutable -- cannot modify",
    )


@event.listens_for(ApprovalLedgerEntryModel, "before_delete")
def prevent_ledger_delete(mapper, connection, target):
    """Prevent deletion of approval ledger entries."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalLedgerEntry",
        entity_id=str(target.id),
        reason="Ledger entries are immutable -- cannot delete",
    )
