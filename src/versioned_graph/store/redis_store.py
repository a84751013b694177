"""
Redis-backed versioned store.

Each key holds a Redis hash with two fields:
    data     - the record bytes
    version  - integer, 0 on create, +1 per successful write

Create and transact run as server-side Lua scripts, which Redis executes
atomically, so the check-all-then-write-all contract holds against any
number of concurrent clients. Reads are a plain HMGET.

Multi-key scripts require every key of a transaction to live on one Redis
node; a single (non-cluster) Redis instance is assumed.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from redis.asyncio import BlockingConnectionPool, Redis
from redis.exceptions import RedisError

from ..errors import AlreadyExistsError, NotFoundError, StoreUnavailableError, VersionConflictError
from .base import Committed, Conflict, Op, TransactionResult, WriteOp

logger = logging.getLogger(__name__)

# KEYS[1] = key, ARGV[1] = data. Returns 0 on create, -1 if the key exists.
CREATE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return -1
end
redis.call('HSET', KEYS[1], 'data', ARGV[1], 'version', 0)
return 0
"""

# KEYS[i] = key of op i; ARGV[3i-2] = 'c' | 'w', ARGV[3i-1] = expected version,
# ARGV[3i] = data ('' for checks).
# Returns {0, v1..vn} on commit, {-1, index, actual} on conflict,
# {-2, index} if a key is missing. Indices are 0-based.
TRANSACT_SCRIPT = """
local n = #KEYS
for i = 1, n do
  local version = redis.call('HGET', KEYS[i], 'version')
  if not version then
    return {-2, i - 1}
  end
  local expected = tonumber(ARGV[3 * i - 1])
  if expected ~= -1 and expected ~= tonumber(version) then
    return {-1, i - 1, tonumber(version)}
  end
end
for i = 1, n do
  if ARGV[3 * i - 2] == 'w' then
    redis.call('HSET', KEYS[i], 'data', ARGV[3 * i])
    redis.call('HINCRBY', KEYS[i], 'version', 1)
  end
end
local result = {0}
for i = 1, n do
  result[i + 1] = tonumber(redis.call('HGET', KEYS[i], 'version'))
end
return result
"""

STATUS_COMMITTED = 0
STATUS_CONFLICT = -1
STATUS_MISSING = -2


@contextmanager
def _translate_errors(operation: str, key: str | None = None) -> Iterator[None]:
    """Re-raise Redis failures as StoreUnavailableError."""
    try:
        yield
    except RedisError as e:
        target = f" {key!r}" if key is not None else ""
        raise StoreUnavailableError(f"Redis {operation}{target} failed: {e}") from e


class RedisVersionedStore:
    """
    Async ``VersionedStore`` over a Redis connection pool.

    Keys passed in are prefixed with ``key_prefix`` before reaching Redis;
    all results and errors report the unprefixed key.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: str | None = None,
        db: int = 0,
        max_connections: int = 16,
        socket_timeout: float | None = 5.0,
        key_prefix: str = "vgraph:",
    ):
        self.host = host
        self.port = port
        self.password = password
        self.db = db
        self.max_connections = max_connections
        self.socket_timeout = socket_timeout
        self.key_prefix = key_prefix

        self._pool: BlockingConnectionPool | None = None
        self._redis: Redis | None = None
        self._create_script = None
        self._transact_script = None
        self._initialized = False

    async def initialize(self) -> None:
        """Create the connection pool, verify connectivity and register scripts."""
        if self._initialized:
            return

        self._pool = BlockingConnectionPool(
            host=self.host,
            port=self.port,
            password=self.password,
            db=self.db,
            max_connections=self.max_connections,
            timeout=None,
            socket_timeout=self.socket_timeout,
            decode_responses=False,
        )
        self._redis = Redis(connection_pool=self._pool)

        try:
            await self._redis.ping()
        except RedisError as e:
            logger.error(f"RedisVersionedStore initialization failed: {e}")
            await self._redis.aclose()
            await self._pool.aclose()
            self._redis = None
            self._pool = None
            raise StoreUnavailableError(f"Cannot reach Redis at {self.host}:{self.port}: {e}") from e

        self._create_script = self._redis.register_script(CREATE_SCRIPT)
        self._transact_script = self._redis.register_script(TRANSACT_SCRIPT)
        self._initialized = True
        logger.info(f"RedisVersionedStore initialized: {self.host}:{self.port}/{self.db} (prefix={self.key_prefix!r})")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("RedisVersionedStore not initialized. Call initialize() first.")

    @property
    def redis(self) -> Redis:
        self._require_initialized()
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def create(self, key: str, data: bytes) -> int:
        self._require_initialized()
        with _translate_errors("create", key):
            status = await self._create_script(keys=[self._make_key(key)], args=[data])
        if int(status) == STATUS_CONFLICT:
            raise AlreadyExistsError(key)
        return 0

    async def ensure(self, key: str, data: bytes = b"") -> bool:
        try:
            await self.create(key, data)
        except AlreadyExistsError:
            return False
        return True

    async def read(self, key: str) -> tuple[bytes, int]:
        with _translate_errors("read", key):
            data, version = await self.redis.hmget(self._make_key(key), ["data", "version"])
        if version is None:
            raise NotFoundError(key)
        return (data or b""), int(version)

    async def transact(self, ops: list[Op]) -> TransactionResult:
        self._require_initialized()
        if not ops:
            return Committed(versions=())

        keys: list[str] = []
        args: list[Any] = []
        for op in ops:
            keys.append(self._make_key(op.key))
            if isinstance(op, WriteOp):
                args.extend(["w", op.expected_version, op.data])
            else:
                args.extend(["c", op.expected_version, b""])

        with _translate_errors("transact", ops[0].key):
            reply = await self._transact_script(keys=keys, args=args)

        status = int(reply[0])
        if status == STATUS_COMMITTED:
            return Committed(versions=tuple(int(v) for v in reply[1:]))

        index = int(reply[1])
        op = ops[index]
        if status == STATUS_MISSING:
            raise NotFoundError(op.key)

        logger.debug(f"Conflict on {op.key}: expected {op.expected_version}, found {int(reply[2])}")
        return Conflict(
            index=index,
            key=op.key,
            expected_version=op.expected_version,
            actual_version=int(reply[2]),
        )

    async def write(self, key: str, data: bytes, expected_version: int) -> int:
        result = await self.transact([WriteOp(key, data, expected_version)])
        if isinstance(result, Conflict):
            raise VersionConflictError(key, expected_version, result.actual_version)
        return result.versions[0]

    async def close(self) -> None:
        """Close the connection pool."""
        if self._redis is not None:
            try:
                await self._redis.aclose()
                if self._pool is not None:
                    await self._pool.aclose()
                logger.info("RedisVersionedStore connection pool closed")
            except RedisError as e:
                logger.warning(f"Error closing RedisVersionedStore pool: {e}")
            finally:
                self._redis = None
                self._pool = None
                self._create_script = None
                self._transact_script = None
                self._initialized = False
