"""Utility helpers for the roadmap kernel."""

from roadmap_kernel.utils.hashing import canonical_json, state_digest

__all__ = ["canonical_json", "state_digest"]
