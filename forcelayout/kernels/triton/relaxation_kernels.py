"""CUDA/Triton implementation of the Gauss-Seidel relaxation routines.

Same call shape and semantics as `forcelayout.kernels.reference`:
1) points: one program per point, all-pairs repulsion tiled in BLOCK-sized
   source chunks, plus gravity and a jitter for coincident points
2) springs: one program per work item, folds every edge of the item into its
   destination node and writes that node only
3) springs gather: one program per work item, writes the endpoint pair of
   each of its edges

This module imports Triton at load time; the program loader only imports it
once the Triton backend has been selected.
"""

from __future__ import annotations

import torch
import triton
import triton.language as tl

from forcelayout.kernels.reference import EPS, JITTER_SCALE, MAX_STEP_FRACTION


@triton.jit
def gauss_seidel_points_kernel(
    in_ptr,  # fp32 [N*2]
    out_ptr,  # fp32 [N*2]
    rand_ptr,  # fp32 [R*2]
    n,
    num_rand,
    step,
    width,
    height,
    charge,
    gravity,
    max_step,
    eps,
    jitter_scale,
    BLOCK: tl.constexpr,
):
    i = tl.program_id(0)
    if i >= n:
        return
    px = tl.load(in_ptr + i * 2 + 0)
    py = tl.load(in_ptr + i * 2 + 1)
    r = (i + step) % num_rand
    jx = (tl.load(rand_ptr + r * 2 + 0) - 0.5) * jitter_scale
    jy = (tl.load(rand_ptr + r * 2 + 1) - 0.5) * jitter_scale

    accx = tl.zeros([BLOCK], dtype=tl.float32)
    accy = tl.zeros([BLOCK], dtype=tl.float32)
    for start in range(0, n, BLOCK):
        offs = start + tl.arange(0, BLOCK)
        m = offs < n
        qx = tl.load(in_ptr + offs * 2 + 0, mask=m, other=0.0)
        qy = tl.load(in_ptr + offs * 2 + 1, mask=m, other=0.0)
        dx = px - qx
        dy = py - qy
        d2 = dx * dx + dy * dy
        not_self = offs != i
        coincident = (d2 < eps) & not_self
        dx = tl.where(coincident, jx, dx)
        dy = tl.where(coincident, jy, dy)
        d2 = tl.where(coincident, jx * jx + jy * jy, d2)
        d2 = tl.maximum(d2, eps)
        valid = m & not_self
        accx += tl.where(valid, dx / d2, 0.0)
        accy += tl.where(valid, dy / d2, 0.0)

    fx = -charge * tl.sum(accx, axis=0) + gravity * (0.5 * width - px)
    fy = -charge * tl.sum(accy, axis=0) + gravity * (0.5 * height - py)
    norm = tl.maximum(tl.sqrt(fx * fx + fy * fy), eps)
    scale = tl.where(norm > max_step, max_step / norm, 1.0)
    tl.store(out_ptr + i * 2 + 0, px + fx * scale)
    tl.store(out_ptr + i * 2 + 1, py + fy * scale)


@triton.jit
def gauss_seidel_springs_kernel(
    springs_ptr,  # int32 [E*2] (src, dst)
    work_ptr,  # int32 [W*2] (first_edge, edge_count)
    tags_ptr,  # int32 [E]
    in_ptr,  # fp32 [N*2]
    out_ptr,  # fp32 [N*2]
    num_items,
    strength0,
    distance0,
    strength1,
    distance1,
    eps,
):
    w = tl.program_id(0)
    if w >= num_items:
        return
    first = tl.load(work_ptr + w * 2 + 0)
    count = tl.load(work_ptr + w * 2 + 1)
    owner = tl.load(springs_ptr + first * 2 + 1)
    ox = tl.load(in_ptr + owner * 2 + 0)
    oy = tl.load(in_ptr + owner * 2 + 1)

    ax = ox * 0.0
    ay = oy * 0.0
    for k in range(0, count):
        e = first + k
        s = tl.load(springs_ptr + e * 2 + 0)
        tag = tl.load(tags_ptr + e)
        dx = tl.load(in_ptr + s * 2 + 0) - ox
        dy = tl.load(in_ptr + s * 2 + 1) - oy
        d = tl.maximum(tl.sqrt(dx * dx + dy * dy), eps)
        strength = tl.where(tag == 0, strength0, strength1)
        rest = tl.where(tag == 0, distance0, distance1)
        f = strength * (1.0 - rest / d)
        ax += f * dx
        ay += f * dy

    c = tl.maximum(count.to(tl.float32), 1.0)
    tl.store(out_ptr + owner * 2 + 0, ox + 0.5 * ax / c)
    tl.store(out_ptr + owner * 2 + 1, oy + 0.5 * ay / c)


@triton.jit
def gauss_seidel_springs_gather_kernel(
    springs_ptr,  # int32 [E*2]
    work_ptr,  # int32 [W*2]
    in_ptr,  # fp32 [N*2]
    pos_ptr,  # fp32 [E*4] (src_x, src_y, dst_x, dst_y)
    num_items,
):
    w = tl.program_id(0)
    if w >= num_items:
        return
    first = tl.load(work_ptr + w * 2 + 0)
    count = tl.load(work_ptr + w * 2 + 1)
    for k in range(0, count):
        e = first + k
        s = tl.load(springs_ptr + e * 2 + 0)
        d = tl.load(springs_ptr + e * 2 + 1)
        tl.store(pos_ptr + e * 4 + 0, tl.load(in_ptr + s * 2 + 0))
        tl.store(pos_ptr + e * 4 + 1, tl.load(in_ptr + s * 2 + 1))
        tl.store(pos_ptr + e * 4 + 2, tl.load(in_ptr + d * 2 + 0))
        tl.store(pos_ptr + e * 4 + 3, tl.load(in_ptr + d * 2 + 1))


def _require_cuda(name: str, *tensors: torch.Tensor) -> None:
    for t in tensors:
        if not t.is_cuda:
            raise RuntimeError(f"{name}: Triton routine requires CUDA tensors, got {t.device}")
        if not t.is_contiguous():
            raise RuntimeError(f"{name}: Triton routine requires contiguous tensors")


def _block_for(tile_points: int) -> int:
    # tile_points is a byte budget for one tile of (x, y) fp32 pairs
    per_tile = max(16, int(tile_points) // 8)
    return min(1024, triton.next_power_of_2(per_tile))


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
    n = min(int(global_size), int(num_points))
    if n == 0:
        return
    _require_cuda("gauss_seidel_points", input_positions, output_positions, rand_values)
    gauss_seidel_points_kernel[(n,)](
        input_positions,
        output_positions,
        rand_values,
        n,
        int(rand_values.shape[0]),
        int(step_number),
        float(width),
        float(height),
        float(charge),
        float(gravity),
        MAX_STEP_FRACTION * max(float(width), float(height)),
        EPS,
        JITTER_SCALE,
        BLOCK=_block_for(tile_points),
    )


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
    _require_cuda("gauss_seidel_springs", springs, work_list, edge_tags, input_points, output_points)
    output_points.copy_(input_points)
    num_items = int(global_size)
    if num_items == 0:
        return
    gauss_seidel_springs_kernel[(num_items,)](
        springs,
        work_list,
        edge_tags,
        input_points,
        output_points,
        num_items,
        float(edge_strength0),
        float(edge_distance0),
        float(edge_strength1),
        float(edge_distance1),
        EPS,
    )


def gauss_seidel_springs_gather(
    global_size: int,
    *,
    springs: torch.Tensor,
    work_list: torch.Tensor,
    input_points: torch.Tensor,
    spring_positions: torch.Tensor,
) -> None:
    num_items = int(global_size)
    if num_items == 0:
        return
    _require_cuda("gauss_seidel_springs_gather", springs, work_list, input_points, spring_positions)
    gauss_seidel_springs_gather_kernel[(num_items,)](
        springs,
        work_list,
        input_points,
        spring_positions,
        num_items,
    )


ROUTINES = {
    "gauss_seidel_points": gauss_seidel_points,
    "gauss_seidel_springs": gauss_seidel_springs,
    "gauss_seidel_springs_gather": gauss_seidel_springs_gather,
}
