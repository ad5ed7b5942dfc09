"""
Roadmap Kernel - budget approval workflow

Threshold-routed approval of roadmap project budgets with:
- Amount-based approval tiers (sequential or parallel role lists)
- Compare-and-swap workflow transitions
- Append-only approval ledger
- Immutable, gap-free project version snapshots
"""

__version__ = "0.1.0"
