"""
Collaborator interfaces consumed by the workflow engine.

The engine owns none of these concerns: project storage, role lookup,
tier configuration and the pure tier/authorization rules are injected so
the state machine stays unit-testable with fakes and the kernel never
imports the engines layer.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from roadmap_kernel.domain.approval import ThresholdTier, Workflow, WorkflowAction
from roadmap_kernel.domain.project import LifecyclePhase, Project, ProjectStatus


class ProjectRepository(Protocol):
    """Pluggable project storage."""

    def get(self, project_id: UUID) -> Project:
        """Return the current project row, or raise ProjectNotFoundError."""
        ...

    def update(self, project_id: UUID, fields: dict[str, Any], actor_id: UUID) -> Project:
        """Apply a caller edit (never a status change under a workflow)."""
        ...

    def apply_workflow_status(
        self,
        project_id: UUID,
        status: ProjectStatus,
        phase: LifecyclePhase,
        actor_id: UUID,
        at: datetime,
    ) -> Project:
        """Status change driven by a workflow transition."""
        ...


class RoleDirectory(Protocol):
    """Resolves a user to the approver roles they hold."""

    def roles_of(self, user_id: UUID) -> tuple[str, ...]:
        ...


class TierSource(Protocol):
    """Read-only tier configuration store."""

    def list_tiers(self) -> Sequence[ThresholdTier]:
        ...


class TierResolver(Protocol):
    """Maps an approval amount to exactly one tier."""

    def resolve(self, amount: Decimal) -> ThresholdTier:
        ...


class ActionGuard(Protocol):
    """Decides whether a role may act on a workflow."""

    def check_can_act(
        self, workflow: Workflow, actor_role: str, action: WorkflowAction,
    ) -> None:
        """Raise the specific authorization or state error, or return."""
        ...

    def acting_role_for(
        self, workflow: Workflow, roles: Iterable[str], action: WorkflowAction,
    ) -> str | None:
        ...
