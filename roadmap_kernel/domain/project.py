"""
Project domain types (``roadmap_kernel.domain.project``).

Responsibility
--------------
Pure value objects for the subject of approval: a roadmap project with
scenario budget totals, its externally visible status, the lifecycle tag
that mirrors the workflow phase, and immutable version snapshots.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``Project.version`` starts at 1 and is advanced by exactly one per write
  (enforced by the project repository, recorded here).
* ``Project.approval_amount`` is the selected scenario's total, falling
  back to ``budget_total`` when that scenario has no total of its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class ProjectStatus(str, Enum):
    """Externally visible project status."""

    DRAFT = "Draft"
    PENDING_APPROVAL = "Pending Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    COMPLETED = "Completed"


class LifecyclePhase(str, Enum):
    """Visibility tag mirroring the approval workflow phase."""

    DRAFT = "draft"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProjectScenario(str, Enum):
    """Budget scenario a project is planned under."""

    BASE_CASE = "Base Case"
    BEST_CASE = "Best Case"
    DOWNSIDE_CASE = "Downside Case"


# Statuses from which a project may be (re)submitted for approval.
SUBMITTABLE_STATUSES: frozenset[ProjectStatus] = frozenset({
    ProjectStatus.DRAFT,
    ProjectStatus.REJECTED,
})


@dataclass(frozen=True)
class Project:
    """Immutable snapshot of a roadmap project row."""

    project_id: UUID
    owner_id: UUID
    header: str
    status: ProjectStatus = ProjectStatus.DRAFT
    lifecycle_phase: LifecyclePhase = LifecyclePhase.DRAFT
    scenario: ProjectScenario = ProjectScenario.BASE_CASE
    description: str = ""
    department: str = ""
    budget_total: Decimal = Decimal("0")
    budget_base_case: Decimal | None = None
    budget_best_case: Decimal | None = None
    budget_downside_case: Decimal | None = None
    actual_total: Decimal = Decimal("0")
    version: int = 1
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def approval_amount(self) -> Decimal:
        """The monetary total submitted for approval."""
        scenario_total = {
            ProjectScenario.BASE_CASE: self.budget_base_case,
            ProjectScenario.BEST_CASE: self.budget_best_case,
            ProjectScenario.DOWNSIDE_CASE: self.budget_downside_case,
        }[self.scenario]
        if scenario_total is not None:
            return scenario_total
        return self.budget_total

    def snapshot(self) -> dict[str, Any]:
        """Full field snapshot, JSON-ready, for the version store."""
        return {
            "project_id": str(self.project_id),
            "owner_id": str(self.owner_id),
            "header": self.header,
            "description": self.description,
            "department": self.department,
            "status": self.status.value,
            "lifecycle_phase": self.lifecycle_phase.value,
            "scenario": self.scenario.value,
            "budget_total": _decimal_str(self.budget_total),
            "budget_base_case": _decimal_str(self.budget_base_case),
            "budget_best_case": _decimal_str(self.budget_best_case),
            "budget_downside_case": _decimal_str(self.budget_downside_case),
            "actual_total": _decimal_str(self.actual_total),
            "version": self.version,
            "submitted_at": _iso(self.submitted_at),
            "approved_at": _iso(self.approved_at),
        }


@dataclass(frozen=True)
class ProjectVersion:
    """Immutable snapshot of a project at one version number."""

    version_id: UUID
    project_id: UUID
    version_number: int
    snapshot: dict[str, Any] = field(default_factory=dict)
    snapshot_hash: str = ""
    author_id: UUID | None = None
    created_at: datetime | None = None


class VersionWritePolicy(str, Enum):
    """What happens when a version snapshot cannot be written.

    BEST_EFFORT keeps the triggering project write and logs a warning;
    STRICT aborts the whole operation.
    """

    BEST_EFFORT = "best_effort"
    STRICT = "strict"


def _decimal_str(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return format(Decimal(str(value)).normalize(), "f")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
