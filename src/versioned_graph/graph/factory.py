"""
Factory for creating an initialized GraphStore from settings.
"""

import logging

from ..config import Settings, settings
from ..store.factory import create_store
from .store import GraphStore

logger = logging.getLogger(__name__)


async def create_graph_store(config: Settings | None = None) -> GraphStore:
    """
    Build the store backend, wrap it in a GraphStore and create the root.

    Returns:
        Initialized GraphStore
    """
    config = config or settings

    store = await create_store(config.store)
    graph = GraphStore(
        store=store,
        root=config.graph.root,
        retry_policy=config.retry.to_policy(),
    )
    await graph.initialize()

    logger.info(f"Graph store ready: backend={config.store.backend} root={graph.root}")
    return graph
