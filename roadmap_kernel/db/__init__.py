"""Database layer - engine, base classes, types."""

from roadmap_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from roadmap_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
