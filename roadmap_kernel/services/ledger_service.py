"""
ApprovalLedger -- append-only log of approval actions.

Responsibility:
    Records every submit, approve, reject and revision-request action
    against a project, and lists them newest first.

Architecture position:
    Kernel > Services.  Called by WorkflowEngine inside the same
    transaction as the workflow and project writes it describes.

Invariants enforced:
    LG-1 -- Append-only: no update or delete is exposed; ORM listeners on
            ApprovalLedgerEntryModel reject both.
    LG-2 -- Total order: ``seq`` comes from SequenceService, so entries
            sharing a timestamp order by insertion (later first in
            ``list_for``).

Failure modes:
    - ImmutabilityViolationError if any caller tries to modify a stored
      entry through the ORM.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy.orm import Session

from roadmap_kernel.domain.approval import LedgerEntry
from roadmap_kernel.domain.clock import Clock
from roadmap_kernel.logging_config import get_logger
from roadmap_kernel.models.ledger import ApprovalLedgerEntryModel
from roadmap_kernel.selectors.approval_selector import ApprovalSelector
from roadmap_kernel.services.base import BaseService
from roadmap_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger")


class ApprovalLedger(BaseService[ApprovalLedgerEntryModel]):
    """Append-only approval ledger."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Persist ``entry`` and return it with ``seq`` (and a timestamp, when
        the caller left it unset) filled in.
        """
        created_at = entry.created_at or self.clock.now()
        seq = self._sequences.next_value(SequenceService.APPROVAL_LEDGER)

        model = ApprovalLedgerEntryModel(
            id=entry.entry_id,
            project_id=entry.project_id,
            workflow_id=entry.workflow_id,
            actor_id=entry.actor_id,
            actor_role=entry.actor_role,
            action=entry.action.value,
            notes=entry.notes,
            created_at=created_at,
            seq=seq,
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "ledger_entry_appended",
            extra={
                "project_id": str(entry.project_id),
                "workflow_id": str(entry.workflow_id) if entry.workflow_id else None,
                "action": entry.action.value,
                "actor_id": str(entry.actor_id),
                "seq": seq,
            },
        )
        return replace(entry, created_at=created_at, seq=seq)

    def list_for(self, project_id: UUID) -> list[LedgerEntry]:
        """All entries for a project, newest first."""
        return ApprovalSelector(self.session).ledger(project_id)
