"""
Unit tests for NodeRecord and its wire codec.

Covers immutability helpers, round-trip equality (set-order independent),
the exact byte layout, and rejection of malformed payloads.
"""

import struct

import pytest
from pydantic import ValidationError

from versioned_graph.errors import MalformedRecordError
from versioned_graph.models.node import NodeRecord, VersionedNode, deserialize, node_key, serialize


class TestNodeRecord:
    """Test the immutable value type."""

    def test_defaults(self):
        node = NodeRecord(id=7)
        assert node.name is None
        assert node.outbound == frozenset()
        assert node.inbound == frozenset()
        assert node.weight == 0.0

    def test_frozen(self):
        node = NodeRecord(id=1)
        with pytest.raises(ValidationError):
            node.weight = 3.0

    def test_connect_helpers_return_new_records(self):
        node = NodeRecord(id=1)
        linked = node.connect_to(2).connect_from(3)

        assert node.outbound == frozenset()
        assert node.inbound == frozenset()
        assert linked.outbound == {2}
        assert linked.inbound == {3}
        assert linked.id == 1

    def test_connect_is_idempotent(self):
        node = NodeRecord(id=1, outbound=frozenset({2}))
        assert node.connect_to(2) is node

    def test_with_weight(self):
        node = NodeRecord(id=1, name="a").with_weight(0.5)
        assert node.weight == 0.5
        assert node.name == "a"

    def test_empty_name_normalized_to_none(self):
        assert NodeRecord(id=1, name="").name is None

    @pytest.mark.parametrize("bad_id", [2**31, -(2**31) - 1])
    def test_id_must_fit_int32(self, bad_id):
        with pytest.raises(ValidationError):
            NodeRecord(id=bad_id)

    def test_node_key(self):
        assert node_key("/graph", 12) == "/graph/12"

    def test_versioned_node_pairs_record_and_version(self):
        pair = VersionedNode(node=NodeRecord(id=1), version=4)
        assert pair.version == 4
        assert not hasattr(pair.node, "version")


class TestSerialization:
    """Test serialize/deserialize."""

    def test_round_trip(self):
        node = NodeRecord(
            id=42,
            name="hub",
            outbound=frozenset({5, 1, 9}),
            inbound=frozenset({3, -2}),
            weight=0.375,
        )
        assert deserialize(serialize(node)) == node

    def test_round_trip_without_name(self):
        node = NodeRecord(id=0, outbound=frozenset({1}), weight=-1.25)
        restored = deserialize(serialize(node))
        assert restored == node
        assert restored.name is None

    def test_round_trip_unicode_name(self):
        node = NodeRecord(id=3, name="nœud-π")
        assert deserialize(serialize(node)).name == "nœud-π"

    def test_edge_order_does_not_affect_bytes(self):
        a = NodeRecord(id=1, outbound=frozenset([3, 1, 2]))
        b = NodeRecord(id=1, outbound=frozenset([2, 3, 1]))
        assert serialize(a) == serialize(b)

    def test_wire_layout(self):
        node = NodeRecord(id=5, name="ab", outbound=frozenset({2, 1}), inbound=frozenset({7}), weight=0.5)

        expected = (
            struct.pack(">i", 2)
            + b"ab"
            + struct.pack(">id", 5, 0.5)
            + struct.pack(">iii", 2, 1, 2)
            + struct.pack(">ii", 1, 7)
        )
        assert serialize(node) == expected

    def test_absent_name_encodes_zero_length(self):
        data = serialize(NodeRecord(id=1))
        assert data[:4] == b"\x00\x00\x00\x00"
        assert len(data) == 4 + 4 + 8 + 4 + 4


class TestMalformedRecords:
    """Corrupt payloads must fail loudly."""

    def test_empty_bytes(self):
        with pytest.raises(MalformedRecordError):
            deserialize(b"")

    def test_truncated_edge_list(self):
        data = serialize(NodeRecord(id=1, outbound=frozenset({2, 3})))
        with pytest.raises(MalformedRecordError, match="Truncated"):
            deserialize(data[:-6])

    def test_trailing_bytes(self):
        data = serialize(NodeRecord(id=1))
        with pytest.raises(MalformedRecordError, match="trailing"):
            deserialize(data + b"\x00")

    def test_negative_name_length(self):
        data = struct.pack(">i", -1) + struct.pack(">id", 1, 0.0) + struct.pack(">ii", 0, 0)
        with pytest.raises(MalformedRecordError, match="Negative"):
            deserialize(data)

    def test_negative_edge_count(self):
        data = struct.pack(">i", 0) + struct.pack(">id", 1, 0.0) + struct.pack(">ii", -3, 0)
        with pytest.raises(MalformedRecordError, match="Negative"):
            deserialize(data)

    def test_name_length_past_end(self):
        data = struct.pack(">i", 1000) + b"abc"
        with pytest.raises(MalformedRecordError):
            deserialize(data)

    def test_invalid_utf8_name(self):
        data = struct.pack(">i", 2) + b"\xff\xfe" + struct.pack(">id", 1, 0.0) + struct.pack(">ii", 0, 0)
        with pytest.raises(MalformedRecordError, match="UTF-8"):
            deserialize(data)
