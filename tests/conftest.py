import os
import sys

import pytest
import pytest_asyncio

# Keep a developer's shell configuration from leaking into tests
for _var in [v for v in os.environ if v.startswith("VGRAPH_")]:
    del os.environ[_var]

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))


@pytest.fixture
def memory_store():
    """Fresh in-memory versioned store."""
    from versioned_graph.store.memory import InMemoryVersionedStore

    return InMemoryVersionedStore()


@pytest.fixture
def fast_policy():
    """Bounded retry policy without backoff sleeps."""
    from versioned_graph.graph.retry import RetryPolicy

    return RetryPolicy(max_attempts=1000, backoff_base=0.0)


@pytest_asyncio.fixture
async def graph(memory_store, fast_policy):
    """Initialized GraphStore over the in-memory store."""
    from versioned_graph.graph.store import GraphStore

    graph = GraphStore(memory_store, root="/test", retry_policy=fast_policy)
    await graph.initialize()
    yield graph
    await memory_store.close()
