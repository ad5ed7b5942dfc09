"""
roadmap_services.role_directory -- SQL-backed role directory.

Responsibility:
    Resolves a user to the approver roles they hold, assigns and revokes
    roles, and answers spending-authority questions.

Architecture position:
    Services.  Implements the kernel's RoleDirectory port over the
    ``user_roles`` table.  The workflow engine only ever calls
    ``roles_of``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from roadmap_kernel.logging_config import get_logger
from roadmap_kernel.models.user_role import UserRoleModel

logger = get_logger("services.role_directory")


class RoleType:
    """Well-known role names.  Any string is accepted as a role."""

    CEO = "CEO"
    FINANCE_CONTROLLER = "Finance Controller"
    DEPARTMENT_MANAGER = "Department Manager"
    TEAM_MEMBER = "Team Member"
    ADMIN = "Admin"


@dataclass(frozen=True)
class RoleAssignment:
    user_id: UUID
    role_type: str
    department: str | None = None
    spending_authority_limit: Decimal | None = None
    can_approve_projects: bool = True
    can_create_projects: bool = True


def _to_assignment(model: UserRoleModel) -> RoleAssignment:
    return RoleAssignment(
        user_id=model.user_id,
        role_type=model.role_type,
        department=model.department,
        spending_authority_limit=model.spending_authority_limit,
        can_approve_projects=model.can_approve_projects,
        can_create_projects=model.can_create_projects,
    )


class SqlRoleDirectory:
    """Role lookups and assignments over one session."""

    def __init__(self, session: Session):
        self._session = session

    def _rows(self, user_id: UUID) -> list[UserRoleModel]:
        return list(
            self._session.execute(
                select(UserRoleModel)
                .where(UserRoleModel.user_id == user_id)
                .order_by(UserRoleModel.role_type)
            ).scalars()
        )

    def roles_of(self, user_id: UUID) -> tuple[str, ...]:
        """Approver roles held by ``user_id``."""
        return tuple(r.role_type for r in self._rows(user_id) if r.can_approve_projects)

    def assignments_of(self, user_id: UUID) -> list[RoleAssignment]:
        return [_to_assignment(r) for r in self._rows(user_id)]

    def assign_role(
        self,
        user_id: UUID,
        role_type: str,
        department: str | None = None,
        spending_authority_limit: Decimal | None = None,
        can_approve_projects: bool = True,
        can_create_projects: bool = True,
    ) -> RoleAssignment:
        """Grant ``role_type`` to ``user_id``, replacing an existing grant."""
        model = self._session.execute(
            select(UserRoleModel).where(
                UserRoleModel.user_id == user_id,
                UserRoleModel.role_type == role_type,
            )
        ).scalar_one_or_none()
        if model is None:
            model = UserRoleModel(user_id=user_id, role_type=role_type)
            self._session.add(model)
        model.department = department
        model.spending_authority_limit = spending_authority_limit
        model.can_approve_projects = can_approve_projects
        model.can_create_projects = can_create_projects
        self._session.flush()

        logger.info(
            "role_assigned",
            extra={
                "user_id": str(user_id),
                "role_type": role_type,
                "can_approve_projects": can_approve_projects,
            },
        )
        return _to_assignment(model)

    def revoke_role(self, user_id: UUID, role_type: str) -> bool:
        model = self._session.execute(
            select(UserRoleModel).where(
                UserRoleModel.user_id == user_id,
                UserRoleModel.role_type == role_type,
            )
        ).scalar_one_or_none()
        if model is None:
            return False
        self._session.delete(model)
        self._session.flush()
        logger.info("role_revoked", extra={"user_id": str(user_id), "role_type": role_type})
        return True

    def can_approve_amount(self, user_id: UUID, amount: Decimal) -> bool:
        """True if any approving role's spending authority covers ``amount``.

        A role with no limit has unlimited authority.
        """
        for row in self._rows(user_id):
            if not row.can_approve_projects:
                continue
            if row.spending_authority_limit is None or row.spending_authority_limit >= amount:
                return True
        return False
