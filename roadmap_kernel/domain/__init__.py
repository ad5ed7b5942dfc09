"""
Roadmap kernel domain layer -- pure value objects, zero I/O.
"""

from roadmap_kernel.domain.approval import (
    ACTIVE_WORKFLOW_STATUSES,
    TERMINAL_WORKFLOW_STATUSES,
    WORKFLOW_TRANSITIONS,
    LedgerAction,
    LedgerEntry,
    PendingApproval,
    ThresholdTier,
    Workflow,
    WorkflowAction,
    WorkflowStatus,
)
from roadmap_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from roadmap_kernel.domain.project import (
    SUBMITTABLE_STATUSES,
    LifecyclePhase,
    Project,
    ProjectScenario,
    ProjectStatus,
    ProjectVersion,
    VersionWritePolicy,
)

__all__ = [
    "ACTIVE_WORKFLOW_STATUSES",
    "Clock",
    "DeterministicClock",
    "LedgerAction",
    "LedgerEntry",
    "LifecyclePhase",
    "PendingApproval",
    "Project",
    "ProjectScenario",
    "ProjectStatus",
    "ProjectVersion",
    "SUBMITTABLE_STATUSES",
    "SystemClock",
    "TERMINAL_WORKFLOW_STATUSES",
    "ThresholdTier",
    "VersionWritePolicy",
    "WORKFLOW_TRANSITIONS",
    "Workflow",
    "WorkflowAction",
    "WorkflowStatus",
]
