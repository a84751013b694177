"""Directed graph stored as versioned records, updated by optimistic transactions."""

from .errors import (
    AlreadyExistsError,
    GraphStoreError,
    InvalidOperationError,
    MalformedRecordError,
    NotFoundError,
    RetryExhaustedError,
    StoreUnavailableError,
    VersionConflictError,
)
from .graph import GraphStore, RetryPolicy
from .models import NodeRecord, VersionedNode, deserialize, serialize
from .store import ANY_VERSION, InMemoryVersionedStore, RedisVersionedStore

__version__ = "0.1.0"

__all__ = [
    "ANY_VERSION",
    "AlreadyExistsError",
    "GraphStore",
    "GraphStoreError",
    "InMemoryVersionedStore",
    "InvalidOperationError",
    "MalformedRecordError",
    "NodeRecord",
    "NotFoundError",
    "RedisVersionedStore",
    "RetryExhaustedError",
    "RetryPolicy",
    "StoreUnavailableError",
    "VersionConflictError",
    "VersionedNode",
    "deserialize",
    "serialize",
]
