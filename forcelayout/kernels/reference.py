"""Reference relaxation routines in pure torch (CPU/CUDA/MPS).

Each routine receives the dispatch size plus its bound arguments by keyword,
mirroring the Triton routines in `forcelayout.kernels.triton`. A worker's
effect is computed vectorised, but every write still lands only on the slot
that worker owns: a point in the points pass, a destination node in the
springs pass, the edges of one work item in the gather pass.
"""

from __future__ import annotations

import math

import torch

EPS = 1.0e-8
# Per-tick displacement cap, as a fraction of the larger canvas side.
MAX_STEP_FRACTION = 0.05
JITTER_SCALE = 1.0e-4


def expand_work_items(work_list: torch.Tensor, num_items: int) -> tuple[torch.Tensor, torch.Tensor]:
    """Return (edge_index, item_of_edge) for the first `num_items` work items.

    Work item rows are (first_edge, edge_count); the edges of one item are the
    contiguous run first_edge .. first_edge + edge_count - 1.
    """
    items = work_list[:num_items].to(torch.int64)
    firsts = items[:, 0]
    counts = items[:, 1]
    dev = work_list.device
    item_ids = torch.arange(num_items, device=dev, dtype=torch.int64)
    item_of_edge = torch.repeat_interleave(item_ids, counts)
    starts = torch.cumsum(counts, dim=0) - counts
    local = torch.arange(item_of_edge.numel(), device=dev, dtype=torch.int64) - starts[item_of_edge]
    return firsts[item_of_edge] + local, item_of_edge


def _per_kind(kind0: torch.Tensor, value0: float, value1: float, dtype: torch.dtype) -> torch.Tensor:
    a = torch.full(kind0.shape, float(value0), device=kind0.device, dtype=dtype)
    b = torch.full(kind0.shape, float(value1), device=kind0.device, dtype=dtype)
    return torch.where(kind0, a, b)


def gauss_seidel_points(
    global_size: int,
    *,
    num_points: int,
    tiles_per_iteration: int,
    input_positions: torch.Tensor,
    output_positions: torch.Tensor,
    tile_points: int,
    width: float,
    height: float,
    charge: float,
    gravity: float,
    rand_values: torch.Tensor,
    step_number: int,
) -> None:
    """Repulsion + gravity for every point; reads input, writes output."""
    n = min(int(global_size), int(num_points))
    if n == 0:
        return
    pos = input_positions[:n]
    dev = pos.device
    force = torch.zeros_like(pos)

    if charge != 0.0:
        num_rand = int(rand_values.shape[0])
        idx = torch.arange(n, device=dev, dtype=torch.int64)
        jitter = (rand_values[(idx + int(step_number)) % num_rand] - 0.5) * JITTER_SCALE
        tile = max(1, math.ceil(n / max(1, int(tiles_per_iteration))))
        for start in range(0, n, tile):
            stop = min(n, start + tile)
            other = pos[start:stop]
            delta = pos[:, None, :] - other[None, :, :]            # (n, t, 2)
            dist2 = (delta * delta).sum(dim=-1)                    # (n, t)
            is_self = idx[:, None] == torch.arange(start, stop, device=dev)[None, :]
            coincident = (dist2 < EPS) & ~is_self
            # coincident points are pushed apart along the per-point jitter
            delta = torch.where(coincident[..., None], jitter[:, None, :], delta)
            dist2 = torch.where(coincident, (jitter * jitter).sum(dim=-1)[:, None], dist2).clamp_min(EPS)
            contrib = delta / dist2[..., None]
            contrib = torch.where(is_self[..., None], torch.zeros_like(contrib), contrib)
            force += contrib.sum(dim=1)
        force *= -float(charge)

    if gravity != 0.0:
        centre = pos.new_tensor([0.5 * float(width), 0.5 * float(height)])
        force += float(gravity) * (centre - pos)

    max_step = MAX_STEP_FRACTION * max(float(width), float(height))
    norm = force.norm(dim=1, keepdim=True).clamp_min(EPS)
    force = torch.where(norm > max_step, force * (max_step / norm), force)
    output_positions[:n] = pos + force


def gauss_seidel_springs(
    global_size: int,
    *,
    tiles_per_iteration: int,
    springs: torch.Tensor,
    work_list: torch.Tensor,
    edge_tags: torch.Tensor,
    input_points: torch.Tensor,
    output_points: torch.Tensor,
    edge_strength0: float,
    edge_distance0: float,
    edge_strength1: float,
    edge_distance1: float,
    step_number: int,
) -> None:
    """One directional spring pass: each work item moves its destination node.

    Nodes owned by no work item are passed through unchanged.
    """
    output_points.copy_(input_points)
    num_items = int(global_size)
    if num_items == 0:
        return
    edge_idx, item_of_edge = expand_work_items(work_list, num_items)
    pairs = springs[edge_idx].to(torch.int64)
    src, dst = pairs[:, 0], pairs[:, 1]
    tags = edge_tags[edge_idx]

    kind0 = tags == 0
    strength = _per_kind(kind0, edge_strength0, edge_strength1, input_points.dtype)
    distance = _per_kind(kind0, edge_distance0, edge_distance1, input_points.dtype)

    delta = input_points[src] - input_points[dst]
    dist = delta.norm(dim=1).clamp_min(EPS)
    pull = (strength * (1.0 - distance / dist))[:, None] * delta

    acc = torch.zeros((num_items, 2), device=input_points.device, dtype=input_points.dtype)
    acc.index_add_(0, item_of_edge, pull)
    counts = work_list[:num_items, 1].to(input_points.dtype).clamp_min(1.0)
    owners = springs[work_list[:num_items, 0].to(torch.int64), 1].to(torch.int64)
    # [FORMULA] p_dst += 0.5 * mean_e(pull_e)
    output_points[owners] = input_points[owners] + 0.5 * acc / counts[:, None]


def gauss_seidel_springs_gather(
    global_size: int,
    *,
    springs: torch.Tensor,
    work_list: torch.Tensor,
    input_points: torch.Tensor,
    spring_positions: torch.Tensor,
) -> None:
    """Write (src_xy, dst_xy) for every edge covered by the first work items."""
    num_items = int(global_size)
    if num_items == 0:
        return
    edge_idx, _ = expand_work_items(work_list, num_items)
    pairs = springs[edge_idx].to(torch.int64)
    spring_positions[edge_idx, 0] = input_points[pairs[:, 0]]
    spring_positions[edge_idx, 1] = input_points[pairs[:, 1]]


ROUTINES = {
    "gauss_seidel_points": gauss_seidel_points,
    "gauss_seidel_springs": gauss_seidel_springs,
    "gauss_seidel_springs_gather": gauss_seidel_springs_gather,
}
