"""
In-process versioned store.

Backs tests and local demos. Every operation first yields to the event loop
(optionally sleeping ``latency`` seconds) and then runs to completion without
awaiting, so each operation is atomic while concurrent tasks still interleave
between round-trips the way they would against a networked store.
"""

import asyncio
import logging
from typing import Any

from ..errors import AlreadyExistsError, NotFoundError, StoreUnavailableError, VersionConflictError
from .base import Committed, Conflict, Op, TransactionResult, WriteOp, version_matches

logger = logging.getLogger(__name__)


class InMemoryVersionedStore:
    """Dict-backed ``VersionedStore``."""

    def __init__(self, latency: float = 0.0):
        self._records: dict[str, tuple[bytes, int]] = {}
        self._latency = latency
        self._closed = False
        self._stats = {"reads": 0, "commits": 0, "conflicts": 0}

    async def _round_trip(self) -> None:
        await asyncio.sleep(self._latency)
        if self._closed:
            raise StoreUnavailableError("In-memory store is closed")

    async def create(self, key: str, data: bytes) -> int:
        await self._round_trip()
        if key in self._records:
            raise AlreadyExistsError(key)
        self._records[key] = (bytes(data), 0)
        return 0

    async def ensure(self, key: str, data: bytes = b"") -> bool:
        await self._round_trip()
        if key in self._records:
            return False
        self._records[key] = (bytes(data), 0)
        return True

    async def read(self, key: str) -> tuple[bytes, int]:
        await self._round_trip()
        self._stats["reads"] += 1
        try:
            return self._records[key]
        except KeyError:
            raise NotFoundError(key) from None

    async def transact(self, ops: list[Op]) -> TransactionResult:
        await self._round_trip()

        # Assert everything first; nothing is written unless all hold
        for index, op in enumerate(ops):
            if op.key not in self._records:
                raise NotFoundError(op.key)
            actual = self._records[op.key][1]
            if not version_matches(op.expected_version, actual):
                self._stats["conflicts"] += 1
                logger.debug(f"Conflict on {op.key}: expected {op.expected_version}, found {actual}")
                return Conflict(index=index, key=op.key, expected_version=op.expected_version, actual_version=actual)

        for op in ops:
            if isinstance(op, WriteOp):
                _, version = self._records[op.key]
                self._records[op.key] = (bytes(op.data), version + 1)

        self._stats["commits"] += 1
        return Committed(versions=tuple(self._records[op.key][1] for op in ops))

    async def write(self, key: str, data: bytes, expected_version: int) -> int:
        result = await self.transact([WriteOp(key, data, expected_version)])
        if isinstance(result, Conflict):
            raise VersionConflictError(key, expected_version, result.actual_version)
        return result.versions[0]

    async def close(self) -> None:
        self._closed = True

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get_stats(self) -> dict[str, Any]:
        return {"keys": len(self._records), **self._stats}

