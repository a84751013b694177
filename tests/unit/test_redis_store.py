"""
Unit tests for RedisVersionedStore.

Tests the Redis backend with mocked redis.asyncio connections.
Validates connection setup, Lua script argument packing, reply parsing,
and translation of Redis failures into StoreUnavailableError.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from versioned_graph.errors import AlreadyExistsError, NotFoundError, StoreUnavailableError, VersionConflictError
from versioned_graph.store.base import CheckOp, Committed, Conflict, VersionedStore, WriteOp


def _mock_redis():
    redis = MagicMock()
    redis.ping = AsyncMock(return_value=True)
    redis.aclose = AsyncMock()
    redis.hmget = AsyncMock()
    create_script = AsyncMock(return_value=0)
    transact_script = AsyncMock()
    redis.register_script.side_effect = [create_script, transact_script]
    return redis, create_script, transact_script


@pytest_asyncio.fixture
async def redis_store():
    """RedisVersionedStore initialized against mocked pool/client."""
    from versioned_graph.store.redis_store import RedisVersionedStore

    redis, create_script, transact_script = _mock_redis()
    with patch("versioned_graph.store.redis_store.BlockingConnectionPool") as mock_pool_cls, patch(
        "versioned_graph.store.redis_store.Redis"
    ) as mock_redis_cls:
        mock_pool_cls.return_value = MagicMock(aclose=AsyncMock())
        mock_redis_cls.return_value = redis

        store = RedisVersionedStore(key_prefix="vgraph:")
        await store.initialize()

    yield store, redis, create_script, transact_script


class TestRedisStoreInit:
    """Test pool creation and connectivity check."""

    @pytest.mark.asyncio
    @patch("versioned_graph.store.redis_store.Redis")
    @patch("versioned_graph.store.redis_store.BlockingConnectionPool")
    async def test_initialize_creates_pool_and_registers_scripts(self, mock_pool_cls, mock_redis_cls):
        from versioned_graph.store.redis_store import CREATE_SCRIPT, TRANSACT_SCRIPT, RedisVersionedStore

        mock_pool = MagicMock(aclose=AsyncMock())
        mock_pool_cls.return_value = mock_pool
        redis, _, _ = _mock_redis()
        mock_redis_cls.return_value = redis

        store = RedisVersionedStore(host="redishost", port=6380, db=2, max_connections=8, socket_timeout=1.5)
        await store.initialize()

        mock_pool_cls.assert_called_once_with(
            host="redishost",
            port=6380,
            password=None,
            db=2,
            max_connections=8,
            timeout=None,
            socket_timeout=1.5,
            decode_responses=False,
        )
        mock_redis_cls.assert_called_once_with(connection_pool=mock_pool)
        redis.ping.assert_awaited_once()
        scripts = [c.args[0] for c in redis.register_script.call_args_list]
        assert scripts == [CREATE_SCRIPT, TRANSACT_SCRIPT]

        # Idempotent: second call is no-op
        await store.initialize()
        assert mock_pool_cls.call_count == 1

    @pytest.mark.asyncio
    @patch("versioned_graph.store.redis_store.Redis")
    @patch("versioned_graph.store.redis_store.BlockingConnectionPool")
    async def test_initialize_unreachable(self, mock_pool_cls, mock_redis_cls):
        from versioned_graph.store.redis_store import RedisVersionedStore

        mock_pool = MagicMock(aclose=AsyncMock())
        mock_pool_cls.return_value = mock_pool
        redis, _, _ = _mock_redis()
        redis.ping.side_effect = RedisConnectionError("connection refused")
        mock_redis_cls.return_value = redis

        store = RedisVersionedStore()
        with pytest.raises(StoreUnavailableError, match="Cannot reach Redis"):
            await store.initialize()

        mock_pool.aclose.assert_awaited_once()
        with pytest.raises(RuntimeError, match="not initialized"):
            await store.read("/g/1")

    def test_satisfies_protocol(self):
        from versioned_graph.store.redis_store import RedisVersionedStore

        assert isinstance(RedisVersionedStore(), VersionedStore)


class TestRedisStoreOps:
    """Test create/read/transact against mocked scripts."""

    @pytest.mark.asyncio
    async def test_create(self, redis_store):
        store, _, create_script, _ = redis_store

        assert await store.create("/g/1", b"payload") == 0
        create_script.assert_awaited_once_with(keys=["vgraph:/g/1"], args=[b"payload"])

    @pytest.mark.asyncio
    async def test_create_existing(self, redis_store):
        store, _, create_script, _ = redis_store
        create_script.return_value = -1

        with pytest.raises(AlreadyExistsError):
            await store.create("/g/1", b"payload")

    @pytest.mark.asyncio
    async def test_ensure_swallows_existing(self, redis_store):
        store, _, create_script, _ = redis_store
        create_script.return_value = -1

        assert await store.ensure("/g") is False

    @pytest.mark.asyncio
    async def test_read(self, redis_store):
        store, redis, _, _ = redis_store
        redis.hmget.return_value = [b"bytes", b"3"]

        assert await store.read("/g/1") == (b"bytes", 3)
        redis.hmget.assert_awaited_once_with("vgraph:/g/1", ["data", "version"])

    @pytest.mark.asyncio
    async def test_read_missing(self, redis_store):
        store, redis, _, _ = redis_store
        redis.hmget.return_value = [None, None]

        with pytest.raises(NotFoundError):
            await store.read("/g/1")

    @pytest.mark.asyncio
    async def test_transact_packs_ops(self, redis_store):
        store, _, _, transact_script = redis_store
        transact_script.return_value = [0, 1, 3]

        result = await store.transact([CheckOp("a", 1), WriteOp("b", b"new", 2)])

        assert result == Committed(versions=(1, 3))
        transact_script.assert_awaited_once_with(
            keys=["vgraph:a", "vgraph:b"],
            args=["c", 1, b"", "w", 2, b"new"],
        )

    @pytest.mark.asyncio
    async def test_transact_conflict(self, redis_store):
        store, _, _, transact_script = redis_store
        transact_script.return_value = [-1, 1, 5]

        result = await store.transact([CheckOp("a", 1), WriteOp("b", b"new", 2)])

        assert result == Conflict(index=1, key="b", expected_version=2, actual_version=5)

    @pytest.mark.asyncio
    async def test_transact_missing_key(self, redis_store):
        store, _, _, transact_script = redis_store
        transact_script.return_value = [-2, 0]

        with pytest.raises(NotFoundError) as exc_info:
            await store.transact([CheckOp("a", 1), WriteOp("b", b"new", 2)])
        assert exc_info.value.key == "a"

    @pytest.mark.asyncio
    async def test_transact_empty_skips_redis(self, redis_store):
        store, _, _, transact_script = redis_store

        assert await store.transact([]) == Committed(versions=())
        transact_script.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_error_is_not_a_conflict(self, redis_store):
        store, _, _, transact_script = redis_store
        transact_script.side_effect = RedisConnectionError("connection reset")

        with pytest.raises(StoreUnavailableError, match="transact"):
            await store.transact([WriteOp("a", b"x", 0)])

    @pytest.mark.asyncio
    async def test_write_conflict_raises(self, redis_store):
        store, _, _, transact_script = redis_store
        transact_script.return_value = [-1, 0, 4]

        with pytest.raises(VersionConflictError) as exc_info:
            await store.write("a", b"x", 2)
        assert exc_info.value.actual_version == 4

    @pytest.mark.asyncio
    async def test_close(self, redis_store):
        store, redis, _, _ = redis_store

        await store.close()

        redis.aclose.assert_awaited_once()
        with pytest.raises(RuntimeError):
            await store.transact([CheckOp("a", 0)])
