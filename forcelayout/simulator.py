"""Simulator state: the buffer registry plus host-visible counts and flags.

Buffers allocated here (logical names):
- cur_points / next_points        (N, 2) fp32
- rand_values                     (R, 2) fp32
- forwards_edges / backwards_edges (E, 2) int32, sorted by destination
- forwards_work_items / backwards_work_items (W, 2) int32
- edge_tags / edge_tags_reverse   (E,) int32
- springs_pos                     (E, 2, 2) fp32, double-buffered
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

import numpy as np
import torch

from forcelayout.buffers import DeviceBufferRegistry
from forcelayout.config import SimulationConfig
from forcelayout.graph import GraphArrays, build_directional_edges, initial_positions, validate_directional


def _tensor(arr: np.ndarray, dtype: torch.dtype) -> torch.Tensor:
    return torch.as_tensor(np.ascontiguousarray(arr)).to(dtype)


class Simulator:
    """Device-resident state of one layout session. Shapes never change after construction."""

    def __init__(
        self,
        graph: GraphArrays,
        config: SimulationConfig,
        *,
        positions: Optional[np.ndarray] = None,
    ) -> None:
        self.config = config
        self.device = torch.device(config.device)
        self.dimensions = config.dimensions
        self.tiles_per_iteration = int(config.tiles_per_iteration)
        self.locked = replace(config.locks)

        edges = build_directional_edges(graph)
        validate_directional(edges, graph.num_points)
        self.edges = edges

        self.num_points = int(graph.num_points)
        self.num_edges = edges.forward.num_edges
        self.num_forwards_work_items = edges.forward.num_work_items
        self.num_backwards_work_items = edges.backward.num_work_items

        if positions is None:
            positions = initial_positions(self.num_points, *self.dimensions, seed=config.seed)
        positions = np.asarray(positions, dtype=np.float32)
        if positions.shape != (self.num_points, 2):
            raise ValueError(f"positions must have shape ({self.num_points}, 2), got {positions.shape}")

        gen = torch.Generator().manual_seed(int(config.seed))
        rand = torch.rand((max(1, int(config.num_rand_values)), 2), generator=gen, dtype=torch.float32)

        b = DeviceBufferRegistry(self.device)
        pts = _tensor(positions, torch.float32)
        b.allocate("cur_points", pts)
        b.allocate("next_points", pts)
        b.allocate("rand_values", rand)
        b.allocate("forwards_edges", _tensor(edges.forward.edges, torch.int32))
        b.allocate("backwards_edges", _tensor(edges.backward.edges, torch.int32))
        b.allocate("forwards_work_items", _tensor(edges.forward.work_items, torch.int32))
        b.allocate("backwards_work_items", _tensor(edges.backward.work_items, torch.int32))
        b.allocate("edge_tags", _tensor(edges.forward.tags, torch.int32))
        b.allocate("edge_tags_reverse", _tensor(edges.backward.tags, torch.int32))
        b.allocate("springs_pos", torch.zeros((self.num_edges, 2, 2), dtype=torch.float32), double_buffered=True)
        self.buffers = b

    def tick_buffers(self, names) -> None:
        self.buffers.tick_buffers(names)

    def positions(self) -> torch.Tensor:
        """Host copy of the authoritative positions."""
        return self.buffers["cur_points"].detach().cpu().clone()

    def spring_positions(self) -> torch.Tensor:
        """Host copy of the published (src_xy, dst_xy) pair of every forward edge."""
        return self.buffers["springs_pos"].detach().cpu().clone()
