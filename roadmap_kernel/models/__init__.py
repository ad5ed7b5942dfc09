"""
ORM model registry.

Importing this package registers every table on ``Base.metadata``.
"""

from roadmap_kernel.models.ledger import ApprovalLedgerEntryModel
from roadmap_kernel.models.project import ProjectModel
from roadmap_kernel.models.sequence import SequenceCounter
from roadmap_kernel.models.threshold import ApprovalThresholdModel
from roadmap_kernel.models.user_role import UserRoleModel
from roadmap_kernel.models.version import ProjectVersionModel
from roadmap_kernel.models.workflow import ApprovalWorkflowModel

__all__ = [
    "ApprovalLedgerEntryModel",
    "ApprovalThresholdModel",
    "ApprovalWorkflowModel",
    "ProjectModel",
    "ProjectVersionModel",
    "SequenceCounter",
    "UserRoleModel",
]
