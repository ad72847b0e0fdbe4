"""Domain-specific apply modules.

Each module implements deterministic ledger state transitions for a subset
of tx types and returns None for tx types it does not own. The router in
domain_apply.py tries them in order.
"""

from __future__ import annotations

__all__ = [
    "service",
    "messaging",
]
