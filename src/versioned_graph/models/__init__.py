"""Node record model and wire codec."""

from .node import NodeRecord, VersionedNode, deserialize, node_key, serialize

__all__ = [
    "NodeRecord",
    "VersionedNode",
    "deserialize",
    "node_key",
    "serialize",
]
