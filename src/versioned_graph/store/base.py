"""
Versioned key/value store interface consumed by the graph layer.

Any backend offering atomic multi-key compare-and-swap satisfies it. Every
value carries a version that starts at 0 when the key is created and grows
by one on each successful write to that key.

Transactions are lists of:
    CheckOp  - assert a key's version, write nothing
    WriteOp  - assert a key's version, then replace its bytes

All assertions are evaluated before any write. If one fails, nothing is
written and ``transact`` returns a ``Conflict`` naming the first failing op.
Conflicts are results, not exceptions: only they are retried upstream.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

# Expected-version sentinel that skips the assertion for an op
ANY_VERSION = -1


@dataclass(frozen=True, slots=True)
class CheckOp:
    """Assert ``key`` is still at ``expected_version``. Never mutates."""

    key: str
    expected_version: int


@dataclass(frozen=True, slots=True)
class WriteOp:
    """Replace ``key``'s bytes if it is still at ``expected_version``."""

    key: str
    data: bytes
    expected_version: int


Op = CheckOp | WriteOp


@dataclass(frozen=True, slots=True)
class Committed:
    """Successful transaction. ``versions[i]`` is op i's key version afterwards."""

    versions: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class Conflict:
    """Aborted transaction: op ``index`` found ``actual_version``."""

    index: int
    key: str
    expected_version: int
    actual_version: int


TransactionResult = Committed | Conflict


@runtime_checkable
class VersionedStore(Protocol):
    """Protocol for atomic versioned key/value backends.

    Implementations raise ``StoreUnavailableError`` for connectivity or
    permission failures so callers never confuse them with conflicts.
    """

    async def create(self, key: str, data: bytes) -> int:
        """Create ``key`` at version 0. Raises ``AlreadyExistsError``."""

    async def ensure(self, key: str, data: bytes = b"") -> bool:
        """Create ``key`` unless it exists. Returns True if it was created."""

    async def read(self, key: str) -> tuple[bytes, int]:
        """Return ``(data, version)``. Raises ``NotFoundError``."""

    async def transact(self, ops: list[Op]) -> TransactionResult:
        """Apply ``ops`` atomically. Raises ``NotFoundError`` for a missing key."""

    async def write(self, key: str, data: bytes, expected_version: int) -> int:
        """Single conditional write. Raises ``VersionConflictError`` on mismatch."""

    async def close(self) -> None:
        """Release backend resources."""


def version_matches(expected: int, actual: int) -> bool:
    return expected == ANY_VERSION or expected == actual
