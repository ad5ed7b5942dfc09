"""
Module: roadmap_engines
Responsibility:
    Pure calculation engines for budget approval: tier resolution and
    action eligibility.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import roadmap_kernel domain types, exceptions and logging.
    MUST NOT import roadmap_services.

Invariants enforced:
    - Purity: engines never read the clock or a database.
    - Decimal-only amounts.
"""

from roadmap_engines.authorization import (
    AuthorizationGuard,
    acting_role_for,
    can_act,
    check_can_act,
)
from roadmap_engines.threshold import ThresholdResolver, resolve_tier

__all__ = [
    "AuthorizationGuard",
    "ThresholdResolver",
    "acting_role_for",
    "can_act",
    "check_can_act",
    "resolve_tier",
]
