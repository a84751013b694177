"""
Graph operations as optimistic transactions over a versioned store.

Every mutating operation follows the same cycle:

    READ     - fetch the records involved, remembering each version
    COMPUTE  - derive the new record(s) in memory
    COMMIT   - one atomic transaction that asserts every version read
               and writes the changed record(s)

A stale version aborts the whole transaction and the cycle restarts from
READ with fresh data, up to the retry policy's budget. Nothing is locked;
correctness rests entirely on the store's conditional transaction.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import InvalidOperationError, MalformedRecordError, RetryExhaustedError
from ..models.node import NodeRecord, VersionedNode, deserialize, node_key, serialize
from ..store.base import ANY_VERSION, CheckOp, Conflict, Op, TransactionResult, VersionedStore, WriteOp
from .retry import RetryPolicy, run_optimistic

logger = logging.getLogger(__name__)


class GraphStore:
    """
    Directed weighted graph, one versioned store key per node.

    Keys are ``root + "/" + id``. The root key itself is created by
    ``initialize()`` and carries no data.
    """

    def __init__(
        self,
        store: VersionedStore,
        root: str = "/graph",
        retry_policy: RetryPolicy | None = None,
    ):
        self._store = store
        self.root = root.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self._stats = {"commits": 0, "conflicts": 0, "exhausted": 0}

    @property
    def store(self) -> VersionedStore:
        return self._store

    async def initialize(self) -> None:
        """Create the root key if it is missing. Safe to call repeatedly."""
        created = await self._store.ensure(self.root)
        if created:
            logger.info(f"Created graph root {self.root}")
        else:
            logger.debug(f"Graph root {self.root} already exists")

    def _key(self, node_id: int) -> str:
        return node_key(self.root, node_id)

    # ── Single-record access ────────────────────────────────────────────

    async def add_node(self, node_id: int, name: str | None = None) -> NodeRecord:
        """
        Create a node with no edges and weight 0.

        Raises:
            AlreadyExistsError: if the id is taken (not retried)
        """
        node = NodeRecord(id=node_id, name=name)
        await self._store.create(self._key(node_id), serialize(node))
        logger.debug(f"Added node {node_id}")
        return node

    async def read_node(self, node_id: int) -> VersionedNode:
        """Read a node together with its current store version."""
        key = self._key(node_id)
        data, version = await self._store.read(key)
        try:
            node = deserialize(data)
        except MalformedRecordError as e:
            raise MalformedRecordError(str(e), key=key) from e
        return VersionedNode(node=node, version=version)

    async def get_node(self, node_id: int) -> NodeRecord:
        """Read a node. Store errors propagate; there is no retry."""
        return (await self.read_node(node_id)).node

    async def update(self, node: NodeRecord, version: int) -> int:
        """
        Write a caller-built record back, conditioned on ``version``.

        Meant for one-off corrections such as pinning a boundary node's
        weight. Pass the version from ``read_node``; ``ANY_VERSION`` skips
        the check and may silently overwrite a concurrent writer.

        Returns:
            The record's new version

        Raises:
            VersionConflictError: if the record changed since ``version``
        """
        if version == ANY_VERSION:
            logger.warning(f"Unconditional write to node {node.id}")
        new_version = await self._store.write(self._key(node.id), serialize(node), version)
        self._stats["commits"] += 1
        return new_version

    # ── Optimistic transactions ─────────────────────────────────────────

    def _count_conflict(self, conflict: Conflict) -> None:
        self._stats["conflicts"] += 1

    async def _run(self, operation: str, attempt: Callable[[], Awaitable[TransactionResult]]) -> None:
        try:
            await run_optimistic(operation, attempt, self.retry_policy, on_conflict=self._count_conflict)
        except RetryExhaustedError:
            self._stats["exhausted"] += 1
            raise
        self._stats["commits"] += 1

    async def connect(self, source_id: int, target_id: int) -> None:
        """
        Add the directed edge ``source_id -> target_id``.

        Both endpoints are updated in one transaction, each write checked
        against the version it was read at, so the edge is always visible
        from both sides or from neither.
        """

        async def attempt() -> TransactionResult:
            if source_id == target_id:
                current = await self.read_node(source_id)
                node = current.node.connect_to(target_id).connect_from(source_id)
                return await self._store.transact([WriteOp(self._key(source_id), serialize(node), current.version)])

            source = await self.read_node(source_id)
            target = await self.read_node(target_id)
            return await self._store.transact(
                [
                    WriteOp(self._key(source_id), serialize(source.node.connect_to(target_id)), source.version),
                    WriteOp(self._key(target_id), serialize(target.node.connect_from(source_id)), target.version),
                ]
            )

        await self._run(f"connect({source_id}, {target_id})", attempt)

    async def reweight(self, node_id: int) -> float:
        """
        Set a node's weight to the mean weight of its inbound neighbours.

        The commit checks every neighbour's version alongside the write, so
        a mean computed from values that changed mid-flight is never stored.

        Returns:
            The committed weight

        Raises:
            InvalidOperationError: if the node has no inbound neighbours;
                nothing is written
        """
        committed_weight = 0.0

        async def attempt() -> TransactionResult:
            nonlocal committed_weight

            current = await self.read_node(node_id)
            neighbors = sorted(current.node.inbound)
            if not neighbors:
                raise InvalidOperationError(f"Node {node_id} has no inbound neighbours to average")

            ops: list[Op] = []
            mean = 0.0
            for count, neighbor_id in enumerate(neighbors, start=1):
                neighbor = await self.read_node(neighbor_id)
                ops.append(CheckOp(self._key(neighbor_id), neighbor.version))
                mean += (neighbor.node.weight - mean) / count

            ops.append(WriteOp(self._key(node_id), serialize(current.node.with_weight(mean)), current.version))
            committed_weight = mean
            return await self._store.transact(ops)

        await self._run(f"reweight({node_id})", attempt)
        return committed_weight

    def get_stats(self) -> dict[str, Any]:
        """Commit/conflict counters for this GraphStore instance."""
        return {"root": self.root, **self._stats}
