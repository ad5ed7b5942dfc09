"""
BaseService -- abstract base for kernel write services.

Responsibility:
    Common constructor and session-handling contract.  Concrete services
    receive a SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    TX-1 -- Transaction boundaries: services flush within the caller's
            transaction and never commit or roll back themselves.  The
            caller (BudgetApprovalService or a test harness) owns the
            ``session_scope``.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from roadmap_kernel.db.base import Base
from roadmap_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Read-heavy queries belong in ``roadmap_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
