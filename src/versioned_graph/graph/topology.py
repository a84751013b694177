"""
Hypercube relaxation scenario.

Builds a d-dimensional hypercube (node ids 0 .. 2**d - 1, each linked both
ways to the ids differing in one bit), pins node 0 at weight 0 and the
all-ones node at weight 1, then repeatedly reweights random interior nodes.

This progressive averaging solves for node voltages in a network of unit
resistors held at 0 V and 1 V. It is a good exercise of ``reweight``: a
node may only take a new value if none of its neighbours moved while the
mean was being computed.
"""

import logging
import random
from fractions import Fraction

from .store import GraphStore

logger = logging.getLogger(__name__)

# Analytic voltages of the 5-cube by Hamming weight 0..5
HYPERCUBE_5_VOLTAGES: tuple[Fraction, ...] = (
    Fraction(0),
    Fraction(3, 8),
    Fraction(15, 32),
    Fraction(17, 32),
    Fraction(5, 8),
    Fraction(1),
)


def hypercube_edges(dimensions: int) -> list[tuple[int, int]]:
    """Directed edges of the hypercube, both directions of every link."""
    size = 1 << dimensions
    edges = []
    for node_id in range(size):
        for bit in range(dimensions):
            edges.append((node_id, node_id ^ (1 << bit)))
    return edges


def probe_nodes(dimensions: int) -> list[int]:
    """One node per Hamming weight: 0, 1, 3, 7, ... (low bits set)."""
    return [(1 << weight) - 1 for weight in range(dimensions + 1)]


def split_iterations(total: int, workers: int) -> list[int]:
    """Share ``total`` reweights among ``workers``; the first takes the remainder."""
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    share, remainder = divmod(total, workers)
    return [share + remainder] + [share] * (workers - 1)


async def build_hypercube(graph: GraphStore, dimensions: int = 5) -> None:
    """Create and wire every hypercube node, then pin the two corners."""
    size = 1 << dimensions
    for node_id in range(size):
        await graph.add_node(node_id)

    for source_id, target_id in hypercube_edges(dimensions):
        await graph.connect(source_id, target_id)

    for node_id, weight in ((0, 0.0), (size - 1, 1.0)):
        current = await graph.read_node(node_id)
        await graph.update(current.node.with_weight(weight), current.version)

    logger.info(f"Built {dimensions}-cube: {size} nodes, {len(hypercube_edges(dimensions))} edges")


async def relax(
    graph: GraphStore,
    dimensions: int = 5,
    iterations: int = 10_000,
    rng: random.Random | None = None,
    report_every: int = 0,
) -> None:
    """Reweight uniformly random interior nodes ``iterations`` times."""
    rng = rng or random.Random()
    interior_max = (1 << dimensions) - 2

    for i in range(iterations):
        await graph.reweight(rng.randint(1, interior_max))
        if report_every and i % report_every == 0:
            errors = await probe_errors(graph, dimensions)
            logger.info(f"{i:>8d} " + " ".join(f"{e:+.6f}" for e in errors))


async def probe_errors(graph: GraphStore, dimensions: int = 5) -> list[float]:
    """Analytic minus stored weight for each probe node (5-cube only)."""
    if dimensions != 5:
        raise ValueError("Analytic voltages are tabulated for the 5-cube only")
    errors = []
    for node_id, expected in zip(probe_nodes(dimensions), HYPERCUBE_5_VOLTAGES):
        node = await graph.get_node(node_id)
        errors.append(float(expected) - node.weight)
    return errors
