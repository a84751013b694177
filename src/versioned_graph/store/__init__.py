"""
Versioned key/value stores.

Backends implementing the VersionedStore protocol:
- InMemoryVersionedStore: in-process, for tests and demos
- RedisVersionedStore: Lua-scripted atomic transactions on Redis
"""

from .base import ANY_VERSION, CheckOp, Committed, Conflict, TransactionResult, VersionedStore, WriteOp
from .memory import InMemoryVersionedStore
from .redis_store import RedisVersionedStore

__all__ = [
    "ANY_VERSION",
    "CheckOp",
    "Committed",
    "Conflict",
    "InMemoryVersionedStore",
    "RedisVersionedStore",
    "TransactionResult",
    "VersionedStore",
    "WriteOp",
]
