"""
Module: roadmap_kernel.models.user_role
Responsibility: ORM persistence for user role assignments.

Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_kernel.db.base import Base, UUIDString


class UserRoleModel(Base):
    """One role held by one user.

    ``spending_authority_limit`` of None means unlimited authority.
    """

    __tablename__ = "user_roles"

    __table_args__ = (
        UniqueConstraint("user_id", "role_type", name="uq_user_roles_user_role"),
        Index("ix_user_roles_role_type", "role_type"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    role_type: Mapped[str] = mapped_column(String(100), nullable=False)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    spending_authority_limit: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True,
    )
    can_approve_projects: Mapped[bool] = mapped_column(nullable=False, default=True)
    can_create_projects: Mapped[bool] = mapped_column(nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<UserRole {self.user_id} {self.role_type}>"
