"""
roadmap_services -- outward service layer.

Dependency direction:
    roadmap_services -> roadmap_engines, roadmap_config, roadmap_kernel
    Nothing below this package imports from it.
"""

from roadmap_services.approval_service import ApprovalUnitOfWork, BudgetApprovalService
from roadmap_services.role_directory import RoleAssignment, RoleType, SqlRoleDirectory
from roadmap_services.tier_store import ConfigTierSource, SqlTierStore

__all__ = [
    "ApprovalUnitOfWork",
    "BudgetApprovalService",
    "ConfigTierSource",
    "RoleAssignment",
    "RoleType",
    "SqlRoleDirectory",
    "SqlTierStore",
]
