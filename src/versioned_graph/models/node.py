"""Node record model and its wire codec.

A NodeRecord is an immutable value. The store version a record was read at
is kept beside it in ``VersionedNode``, never inside it, so business logic
cannot accidentally persist or compare it.

Wire layout (big-endian):

    int32    name_length      (0 when the name is absent)
    byte[]   name (UTF-8)
    int32    id
    float64  weight
    int32    out_count
    int32[]  out ids
    int32    in_count
    int32[]  in ids
"""

import logging
import struct
from dataclasses import dataclass
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import MalformedRecordError

logger = logging.getLogger(__name__)

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

NodeId = Annotated[int, Field(ge=INT32_MIN, le=INT32_MAX)]
"""Signed 32-bit node identifier."""

_INT = struct.Struct(">i")
_HEADER = struct.Struct(">id")  # id, weight


class NodeRecord(BaseModel):
    """A graph node: identity, display name, edge sets and weight."""

    model_config = ConfigDict(frozen=True)

    id: NodeId
    name: str | None = None
    outbound: frozenset[NodeId] = Field(default_factory=frozenset)
    inbound: frozenset[NodeId] = Field(default_factory=frozenset)
    weight: float = 0.0

    @field_validator("name", mode="before")
    @classmethod
    def _empty_name_is_absent(cls, v: Any) -> Any:
        # Both encode as name_length == 0
        if v == "":
            return None
        return v

    def connect_to(self, other: int) -> Self:
        """Return a copy with ``other`` added to the outbound set."""
        if other in self.outbound:
            return self
        return self.model_copy(update={"outbound": self.outbound | {other}})

    def connect_from(self, other: int) -> Self:
        """Return a copy with ``other`` added to the inbound set."""
        if other in self.inbound:
            return self
        return self.model_copy(update={"inbound": self.inbound | {other}})

    def with_weight(self, weight: float) -> Self:
        return self.model_copy(update={"weight": float(weight)})


@dataclass(frozen=True, slots=True)
class VersionedNode:
    """A record paired with the store version it was read at."""

    node: NodeRecord
    version: int


def node_key(root: str, node_id: int) -> str:
    """Store key of a node record."""
    return f"{root}/{node_id}"


def serialize(node: NodeRecord) -> bytes:
    """Encode a record in the canonical wire layout.

    Edge ids are written in ascending order so equal records always produce
    equal bytes.
    """
    name = node.name.encode("utf-8") if node.name else b""
    out_ids = sorted(node.outbound)
    in_ids = sorted(node.inbound)

    parts = [
        _INT.pack(len(name)),
        name,
        _HEADER.pack(node.id, node.weight),
        struct.pack(f">i{len(out_ids)}i", len(out_ids), *out_ids),
        struct.pack(f">i{len(in_ids)}i", len(in_ids), *in_ids),
    ]
    return b"".join(parts)


class _Reader:
    """Cursor over a byte buffer that raises MalformedRecordError on underrun."""

    def __init__(self, data: bytes):
        self._view = memoryview(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._view) - self._pos

    def take(self, size: int, what: str) -> memoryview:
        if size < 0:
            raise MalformedRecordError(f"Negative {what} length: {size}")
        if size > self.remaining:
            raise MalformedRecordError(
                f"Truncated record: need {size} bytes for {what} at offset {self._pos}, have {self.remaining}"
            )
        chunk = self._view[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def unpack(self, fmt: struct.Struct, what: str) -> tuple:
        return fmt.unpack(self.take(fmt.size, what))

    def int_list(self, what: str) -> list[int]:
        (count,) = self.unpack(_INT, f"{what} count")
        if count < 0:
            raise MalformedRecordError(f"Negative {what} count: {count}")
        return list(struct.unpack(f">{count}i", self.take(4 * count, what)))


def deserialize(data: bytes) -> NodeRecord:
    """Decode bytes produced by :func:`serialize`.

    Raises:
        MalformedRecordError: if the bytes are truncated, carry negative
            lengths, an undecodable name, or trailing garbage.
    """
    reader = _Reader(data)

    (name_length,) = reader.unpack(_INT, "name length")
    raw_name = reader.take(name_length, "name")
    try:
        name = bytes(raw_name).decode("utf-8") if name_length else None
    except UnicodeDecodeError as e:
        raise MalformedRecordError(f"Node name is not valid UTF-8: {e}") from e

    node_id, weight = reader.unpack(_HEADER, "id/weight")
    outbound = reader.int_list("out")
    inbound = reader.int_list("in")

    if reader.remaining:
        raise MalformedRecordError(f"{reader.remaining} trailing bytes after node {node_id}")

    return NodeRecord(
        id=node_id,
        name=name,
        outbound=frozenset(outbound),
        inbound=frozenset(inbound),
        weight=weight,
    )
