"""Kernel write services -- flush only, the caller owns the transaction."""

from roadmap_kernel.services.base import BaseService
from roadmap_kernel.services.ledger_service import ApprovalLedger
from roadmap_kernel.services.project_service import ProjectService
from roadmap_kernel.services.sequence_service import SequenceService
from roadmap_kernel.services.version_service import VersionStore
from roadmap_kernel.services.workflow_service import WorkflowEngine

__all__ = [
    "ApprovalLedger",
    "BaseService",
    "ProjectService",
    "SequenceService",
    "VersionStore",
    "WorkflowEngine",
]
