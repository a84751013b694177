#!/usr/bin/env python3
"""
Hypercube relaxation demo.

Builds a 5-dimensional hypercube in the configured versioned store, pins
node 0 at 0 and node 31 at 1, then reweights random interior nodes and
reports the error against the analytic resistor-network voltages.

Usage:
    # In-memory store (default)
    python scripts/hypercube_relaxation.py

    # Against Redis, several concurrent workers
    VGRAPH_STORE_BACKEND=redis VGRAPH_STORE_HOST=localhost \
        python scripts/hypercube_relaxation.py --workers 4 --root /cube-demo

    # More iterations, report every 500
    python scripts/hypercube_relaxation.py --iterations 20000 --report-every 500
"""

import argparse
import asyncio
import logging
import random
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pydantic import ValidationError

from versioned_graph.config import GraphSettings, Settings
from versioned_graph.graph.factory import create_graph_store
from versioned_graph.graph.topology import build_hypercube, probe_errors, relax, split_iterations

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

DIMENSIONS = 5


async def run(args: argparse.Namespace) -> int:
    config = Settings()
    if args.graph is not None:
        config.graph = args.graph

    graph = await create_graph_store(config)
    try:
        logger.info("=" * 60)
        logger.info(f"Building {DIMENSIONS}-cube under {graph.root}")
        logger.info("=" * 60)
        await build_hypercube(graph, DIMENSIONS)

        start = time.time()
        shares = split_iterations(args.iterations, args.workers)
        rng = random.Random(args.seed)
        await asyncio.gather(
            *(
                relax(
                    graph,
                    DIMENSIONS,
                    iterations=shares[worker],
                    rng=random.Random(rng.random()),
                    report_every=args.report_every if worker == 0 else 0,
                )
                for worker in range(args.workers)
            )
        )
        elapsed = time.time() - start

        errors = await probe_errors(graph, DIMENSIONS)
        stats = graph.get_stats()

        logger.info(f"\n✓ Relaxation complete in {elapsed:.1f}s")
        logger.info(f"  Commits: {stats['commits']:,}  Conflicts: {stats['conflicts']:,}")
        for weight, error in enumerate(errors):
            logger.info(f"  Hamming weight {weight}: error {error:+.3e}")

        worst = max(abs(e) for e in errors)
        if worst > args.tolerance:
            logger.error(f"Did not converge: worst error {worst:.3e} > {args.tolerance:.0e}")
            return 1
        return 0
    finally:
        await graph.store.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Relax a hypercube resistor network stored in a versioned store")
    parser.add_argument("--iterations", type=int, default=10_000, help="Total reweight calls")
    parser.add_argument("--workers", type=int, default=1, help="Concurrent relaxation tasks")
    parser.add_argument("--report-every", type=int, default=1000, help="Error report interval (0 = off)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--root", default=None, help="Graph root key (must not already hold a hypercube)")
    parser.add_argument("--tolerance", type=float, default=1e-6, help="Convergence tolerance")
    args = parser.parse_args()

    if args.workers < 1:
        parser.error("--workers must be >= 1")

    args.graph = None
    if args.root:
        try:
            args.graph = GraphSettings(root=args.root)
        except ValidationError as e:
            parser.error(f"--root: {e.errors()[0]['msg']}")

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
