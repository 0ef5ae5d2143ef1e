#!/usr/bin/env python3
"""Force-directed layout entrypoint

Lays out a random graph with the Gauss-Seidel relaxation engine and prints a
summary of the run.

Usage:
    python run.py                        # Run with defaults
    python run.py --points 5000 --edges 20000
    python run.py --backend torch        # Force the reference backend
    python run.py --lock-points          # Springs only
    python run.py --ticks 1000 --verbose
"""

from __future__ import annotations

import argparse
import time
from pathlib import Path

import numpy as np

from forcelayout.config import LockFlags, PhysicsConfig, SimulationConfig
from forcelayout.console import console
from forcelayout.graph import random_graph
from forcelayout.kernels.runtime import get_device
from forcelayout.session import LayoutSession


def main():
    parser = argparse.ArgumentParser(
        description="Gauss-Seidel force-directed layout",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("--points", type=int, default=1000, help="Number of nodes")
    parser.add_argument("--edges", type=int, default=3000, help="Number of edges")
    parser.add_argument("--ticks", type=int, default=200, help="Number of relaxation ticks")
    parser.add_argument("--seed", type=int, default=0, help="Seed for the graph, layout and jitter")
    parser.add_argument("--device", type=str, default=None, help="Device (cuda, mps, cpu)")
    parser.add_argument("--backend", type=str, default="auto", choices=("auto", "torch", "triton"),
                        help="Kernel backend")
    parser.add_argument("--charge", type=float, default=PhysicsConfig.charge, help="Repulsive charge")
    parser.add_argument("--gravity", type=float, default=PhysicsConfig.gravity, help="Gravity toward the centre")
    parser.add_argument("--lock-points", action="store_true", help="Skip the points pass")
    parser.add_argument("--lock-edges", action="store_true", help="Skip the spring passes")
    parser.add_argument("--output", type=str, default=None,
                        help="Write final positions to this .npy file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Trace every kernel dispatch")

    args = parser.parse_args()
    console.verbose = args.verbose

    config = SimulationConfig(
        device=args.device or get_device(),
        backend=args.backend,
        seed=args.seed,
        physics=PhysicsConfig(charge=args.charge, gravity=args.gravity),
        locks=LockFlags(lock_points=args.lock_points, lock_edges=args.lock_edges),
    )

    with console.spinner("Building graph and partitions..."):
        graph = random_graph(args.points, args.edges, seed=args.seed)
        session = LayoutSession(graph, config)

    console.header(
        "Layout",
        points=str(graph.num_points),
        edges=str(graph.num_edges),
        device=str(config.device),
        backend=session.loader.info.backend,
        ticks=str(args.ticks),
    )

    t0 = time.perf_counter()
    session.run(args.ticks)
    elapsed = time.perf_counter() - t0

    pos = session.positions().numpy()
    console.success(
        "Layout finished",
        detail=(
            f"{args.ticks} ticks in {elapsed:.2f}s ({args.ticks / max(elapsed, 1e-9):.1f} ticks/s), "
            f"{session.degraded_ticks} degraded"
        ),
    )
    if pos.size:
        console.info(
            "Bounding box",
            detail=f"x=[{pos[:, 0].min():.3f}, {pos[:, 0].max():.3f}] y=[{pos[:, 1].min():.3f}, {pos[:, 1].max():.3f}]",
        )

    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        np.save(out, pos)
        console.info("Positions written", detail=str(out))


if __name__ == "__main__":
    main()
