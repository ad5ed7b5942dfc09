"""Read-only query selectors."""

from roadmap_kernel.selectors.approval_selector import ApprovalSelector
from roadmap_kernel.selectors.base import BaseSelector

__all__ = ["ApprovalSelector", "BaseSelector"]
