"""
Typed Exception Hierarchy for the Roadmap Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval decisions carry money and accountability. Callers (an approvals
inbox, an audit-trail view, an API layer) must be able to tell a missing
configuration apart from an unauthorized approver or a lost race, without
parsing message strings.

Every error:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RoadmapKernelError (base)
    |
    +-- ConfigurationError
    |   +-- TierResolutionError
    |   |   +-- NoMatchingTierError
    |   +-- InvalidTierTableError
    |
    +-- AuthorizationError
    |   +-- NotAuthorizedError
    |   +-- OutOfSequenceError
    |
    +-- WorkflowStateError
    |   +-- DuplicateWorkflowError
    |   +-- WorkflowTerminalError
    |   +-- WorkflowNotFoundError
    |   +-- InvalidProjectStateError
    |
    +-- ProjectError
    |   +-- ProjectNotFoundError
    |   +-- ProjectLockedError
    |
    +-- ValidationError
    |   +-- MissingJustificationError
    |   +-- InvalidAmountError
    |   +-- UnknownProjectFieldError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- VersionError
        +-- VersionSequenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | NO_MATCHING_TIER            | No tier covers the requested amount
                | INVALID_TIER_TABLE          | Overlapping / gapped / malformed tiers
----------------|-----------------------------|-----------------------------------------
Authorization   | NOT_AUTHORIZED              | Role not pending, or actor lacks role
                | OUT_OF_SEQUENCE             | Sequential tier, role not next in line
----------------|-----------------------------|-----------------------------------------
State           | DUPLICATE_WORKFLOW          | Project already has an active workflow
                | WORKFLOW_TERMINAL           | Action against a finished workflow
                | WORKFLOW_NOT_FOUND          | No workflow for id / project
                | INVALID_PROJECT_STATE       | Project status forbids submission
----------------|-----------------------------|-----------------------------------------
Project         | PROJECT_NOT_FOUND           | Project id doesn't exist
                | PROJECT_LOCKED              | Direct status edit under a workflow
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_JUSTIFICATION       | Reject / revision without notes
                | INVALID_AMOUNT              | Negative approval amount
                | UNKNOWN_PROJECT_FIELD       | Update names a non-editable field
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_MODIFICATION     | Compare-and-swap lost the race
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of a ledger entry/version
----------------|-----------------------------|-----------------------------------------
Versioning      | VERSION_SEQUENCE            | Snapshot number not strictly increasing

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS:

    try:
        approvals.approve_project(project_id, actor_id, "CEO", notes)
    except OutOfSequenceError as e:
        notify_user(f"Waiting on {e.expected_role}")
    except WorkflowTerminalError as e:
        notify_user(f"Request already {e.status}")

2. CONCURRENCY ERRORS ARE RETRYABLE with fresh state:

    except ConcurrentModificationError:
        reload_and_retry()

===============================================================================
"""


class RoadmapKernelError(Exception):
    """
    Base exception for all roadmap kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ROADMAP_KERNEL_ERROR"


# Configuration-related exceptions


class ConfigurationError(RoadmapKernelError):
    """Base exception for configuration-data errors."""

    code: str = "CONFIGURATION_ERROR"


class TierResolutionError(ConfigurationError):
    """An approval tier could not be resolved for a submission."""

    code: str = "TIER_RESOLUTION_ERROR"


class NoMatchingTierError(TierResolutionError):
    """
    No configured tier covers the requested amount.

    This is a configuration-data error, not a runtime bug: the tier table
    is incomplete.  Submission does not proceed.
    """

    code: str = "NO_MATCHING_TIER"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"No approval tier covers amount {amount}")


class InvalidTierTableError(ConfigurationError):
    """The tier table overlaps, leaves gaps, or has malformed tiers."""

    code: str = "INVALID_TIER_TABLE"

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__(
            f"Invalid approval tier table: {'; '.join(problems)}"
        )


# Authorization-related exceptions


class AuthorizationError(RoadmapKernelError):
    """Base exception for actor eligibility errors."""

    code: str = "AUTHORIZATION_ERROR"


class NotAuthorizedError(AuthorizationError):
    """Actor's role is not currently eligible to act on the workflow."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self, workflow_id: str, actor_role: str | None, reason: str):
        self.workflow_id = workflow_id
        self.actor_role = actor_role
        self.reason = reason
        super().__init__(
            f"Role {actor_role!r} may not act on workflow {workflow_id}: {reason}"
        )


class OutOfSequenceError(AuthorizationError):
    """
    Approval attempted out of order under a sequential tier.

    The role is pending, but an earlier role in the required list has not
    approved yet.
    """

    code: str = "OUT_OF_SEQUENCE"

    def __init__(self, workflow_id: str, actor_role: str, expected_role: str):
        self.workflow_id = workflow_id
        self.actor_role = actor_role
        self.expected_role = expected_role
        super().__init__(
            f"Role {actor_role!r} cannot approve workflow {workflow_id} yet: "
            f"waiting on {expected_role!r}"
        )


# Workflow state exceptions


class WorkflowStateError(RoadmapKernelError):
    """Base exception for operations incompatible with workflow state."""

    code: str = "WORKFLOW_STATE_ERROR"


class DuplicateWorkflowError(WorkflowStateError):
    """The project already has an active (non-terminal) workflow."""

    code: str = "DUPLICATE_WORKFLOW"

    def __init__(self, project_id: str, workflow_id: str):
        self.project_id = project_id
        self.workflow_id = workflow_id
        super().__init__(
            f"Project {project_id} already has active workflow {workflow_id}"
        )


class WorkflowTerminalError(WorkflowStateError):
    """The workflow reached a terminal status and is immutable."""

    code: str = "WORKFLOW_TERMINAL"

    def __init__(self, workflow_id: str, status: str):
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(
            f"Workflow {workflow_id} is {status} and cannot be changed"
        )


class WorkflowNotFoundError(WorkflowStateError):
    """No workflow exists for the given workflow or project id."""

    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Workflow not found: {reference}")


class InvalidProjectStateError(WorkflowStateError):
    """The project's status does not allow the requested workflow action."""

    code: str = "INVALID_PROJECT_STATE"

    def __init__(self, project_id: str, status: str, action: str):
        self.project_id = project_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} project {project_id} in status {status!r}"
        )


# Project-related exceptions


class ProjectError(RoadmapKernelError):
    """Base exception for project record errors."""

    code: str = "PROJECT_ERROR"


class ProjectNotFoundError(ProjectError):
    """Project with given ID was not found."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class ProjectLockedError(ProjectError):
    """
    Caller edit refused by the status lock.

    Once a workflow exists, project status moves only through workflow
    transitions (plus the owner's Approved -> Completed step).  No field
    may change while the project is Pending Approval.
    """

    code: str = "PROJECT_LOCKED"

    def __init__(self, project_id: str, reason: str):
        self.project_id = project_id
        self.reason = reason
        super().__init__(f"Project {project_id} is locked: {reason}")


# Validation exceptions


class ValidationError(RoadmapKernelError):
    """Base exception for input validation errors."""

    code: str = "VALIDATION_ERROR"


class MissingJustificationError(ValidationError):
    """Rejection or revision request submitted without notes."""

    code: str = "MISSING_JUSTIFICATION"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"A {action} requires non-empty notes")


class InvalidAmountError(ValidationError):
    """Approval amount is negative or not a number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Invalid approval amount: {amount}")


class UnknownProjectFieldError(ValidationError):
    """Project update names a field that is not editable."""

    code: str = "UNKNOWN_PROJECT_FIELD"

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(f"Unknown or read-only project fields: {', '.join(fields)}")


# Concurrency exceptions


class ConcurrencyError(RoadmapKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """Compare-and-swap failed: the row changed since it was read."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str, expected: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected = expected
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}: "
            f"expected revision {expected} was superseded"
        )


# Immutability exceptions


class ImmutabilityError(RoadmapKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Versioning exceptions


class VersionError(RoadmapKernelError):
    """Base exception for project version snapshot errors."""

    code: str = "VERSION_ERROR"


class VersionSequenceError(VersionError):
    """Snapshot version number is not strictly increasing for the project."""

    code: str = "VERSION_SEQUENCE"

    def __init__(self, project_id: str, version_number: int, last_version: int):
        self.project_id = project_id
        self.version_number = version_number
        self.last_version = last_version
        super().__init__(
            f"Version {version_number} for project {project_id} must follow "
            f"last stored version {last_version}"
        )
