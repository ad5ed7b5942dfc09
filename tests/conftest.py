"""
Pytest fixtures for the roadmap approval test suite.

Provides:
- A fresh SQLite database per test under ``tmp_path``
  (``DATABASE_URL`` overrides, e.g. a throwaway PostgreSQL database)
- A deterministic clock
- Kernel services wired to one session (``workflow_engine`` and friends)
- A BudgetApprovalService wired to its own session factory
- Structured log capture

The default tier table mirrors the two reference scenarios:
``Standard`` [0, 50000) needs the Department Manager within 24 hours;
``Executive`` [50000, inf) needs Department Manager, Finance Controller
and CEO in that order within 72 hours.
"""

import json
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from roadmap_config.schema import (
    ApprovalConfiguration,
    ApprovalSettings,
    ThresholdTierDef,
)
from roadmap_engines.authorization import AuthorizationGuard
from roadmap_engines.threshold import ThresholdResolver
from roadmap_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from roadmap_kernel.domain.clock import DeterministicClock
from roadmap_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from roadmap_kernel.services.project_service import ProjectService
from roadmap_kernel.services.workflow_service import WorkflowEngine
from roadmap_services.approval_service import BudgetApprovalService
from roadmap_services.role_directory import RoleType, SqlRoleDirectory
from roadmap_services.tier_store import SqlTierStore

MANAGER = RoleType.DEPARTMENT_MANAGER
CONTROLLER = RoleType.FINANCE_CONTROLLER
CEO = RoleType.CEO


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture roadmap_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow_engine):
            workflow_engine.submit(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("roadmap_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("DATABASE_URL", f"sqlite:///{tmp_path / 'roadmap.db'}")


@pytest.fixture
def db_engine(database_url):
    engine = init_engine_from_url(database_url)
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A session whose work is rolled back after the test."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Configuration
# =============================================================================


def scenario_tier_defs() -> tuple[ThresholdTierDef, ...]:
    return (
        ThresholdTierDef(
            name="Standard",
            min_amount=Decimal("0"),
            max_amount=Decimal("50000"),
            required_roles=(MANAGER,),
            sequential=True,
            sla_hours=24,
            approval_order=1,
        ),
        ThresholdTierDef(
            name="Executive",
            min_amount=Decimal("50000"),
            max_amount=None,
            required_roles=(MANAGER, CONTROLLER, CEO),
            sequential=True,
            sla_hours=72,
            approval_order=2,
        ),
    )


@pytest.fixture
def approval_config() -> ApprovalConfiguration:
    return ApprovalConfiguration(
        config_id="test",
        version=1,
        tiers=scenario_tier_defs(),
        settings=ApprovalSettings(),
    )


# =============================================================================
# Actors
# =============================================================================


@dataclass(frozen=True)
class Actors:
    owner: UUID
    manager: UUID
    controller: UUID
    ceo: UUID
    outsider: UUID


def _new_actors() -> Actors:
    return Actors(
        owner=uuid4(),
        manager=uuid4(),
        controller=uuid4(),
        ceo=uuid4(),
        outsider=uuid4(),
    )


# =============================================================================
# Kernel wiring (single session)
# =============================================================================


@pytest.fixture
def tier_store(session, approval_config) -> SqlTierStore:
    store = SqlTierStore(session)
    store.seed(approval_config.threshold_tiers())
    return store


@pytest.fixture
def role_directory(session) -> SqlRoleDirectory:
    return SqlRoleDirectory(session)


@pytest.fixture
def actors(role_directory) -> Actors:
    people = _new_actors()
    role_directory.assign_role(people.owner, RoleType.TEAM_MEMBER, can_approve_projects=False)
    role_directory.assign_role(people.manager, MANAGER)
    role_directory.assign_role(people.controller, CONTROLLER)
    role_directory.assign_role(people.ceo, CEO)
    return people


@pytest.fixture
def project_service(session, deterministic_clock) -> ProjectService:
    return ProjectService(session, deterministic_clock)


@pytest.fixture
def workflow_engine(
    session, project_service, role_directory, tier_store, deterministic_clock,
) -> WorkflowEngine:
    return WorkflowEngine(
        session,
        projects=project_service,
        roles=role_directory,
        resolver=ThresholdResolver(tier_store),
        guard=AuthorizationGuard(),
        clock=deterministic_clock,
    )


@pytest.fixture
def make_project(project_service, actors):
    """Factory: create a Draft project whose Base Case total is ``amount``."""

    def _make(amount="10000", **fields):
        values = {
            "header": "Warehouse automation",
            "department": "Operations",
            "budget_total": Decimal(str(amount)),
        }
        values.update(fields)
        return project_service.create(values, actors.owner)

    return _make


# =============================================================================
# Service facade (session per call)
# =============================================================================


@pytest.fixture
def approval_service(session_factory, approval_config, deterministic_clock):
    service = BudgetApprovalService(
        session_factory=session_factory,
        config=approval_config,
        clock=deterministic_clock,
    )
    service.seed_tiers()
    return service


@pytest.fixture
def service_actors(approval_service) -> Actors:
    people = _new_actors()
    approval_service.assign_role(people.owner, RoleType.TEAM_MEMBER, can_approve_projects=False)
    approval_service.assign_role(people.manager, MANAGER)
    approval_service.assign_role(people.controller, CONTROLLER)
    approval_service.assign_role(people.ceo, CEO)
    return people


@pytest.fixture
def submitted_project(approval_service, service_actors):
    """Factory: create and submit a project through the facade."""

    def _make(amount="10000"):
        project = approval_service.create_project(
            {"header": "Field sales expansion", "budget_total": Decimal(str(amount))},
            service_actors.owner,
        )
        approval_service.submit_for_approval(project.project_id, service_actors.owner)
        return project.project_id

    return _make
