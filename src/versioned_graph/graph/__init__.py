"""
Graph layer.

GraphStore implements add_node/connect/reweight/get_node/update as
optimistic transactions over a VersionedStore, retried on version
conflict under a bounded RetryPolicy.
"""

from .retry import RetryPolicy, run_optimistic
from .store import GraphStore

__all__ = [
    "GraphStore",
    "RetryPolicy",
    "run_optimistic",
]
