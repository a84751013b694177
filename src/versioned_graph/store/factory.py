"""
Factory for creating and initializing the versioned store backend.

Selects the backend from StoreSettings (VGRAPH_STORE_BACKEND).
"""

import logging

from ..config import StoreSettings, settings
from .base import VersionedStore
from .memory import InMemoryVersionedStore
from .redis_store import RedisVersionedStore

logger = logging.getLogger(__name__)


async def create_store(config: StoreSettings | None = None) -> VersionedStore:
    """
    Create and initialize the configured versioned store.

    Returns:
        Ready-to-use store instance
    """
    config = config or settings.store

    if config.backend == "memory":
        logger.info("Using in-memory versioned store")
        return InMemoryVersionedStore()

    password = config.password.get_secret_value() if config.password else None
    store = RedisVersionedStore(
        host=config.host,
        port=config.port,
        password=password,
        db=config.db,
        max_connections=config.max_connections,
        socket_timeout=config.socket_timeout,
        key_prefix=config.key_prefix,
    )
    await store.initialize()
    return store
