"""Index-addressable graph arrays and destination-keyed work-item partitions.

Edges are stored as (src, dst) int32 pairs. A directional edge set is sorted by
destination so that all edges aimed at one node form a contiguous run; a work
item (first_edge, edge_count) covers exactly one such run. One worker per work
item then owns its destination node outright, which is what lets a spring pass
update positions without atomics.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Hashable, Iterable, Optional, Sequence

import numpy as np

from forcelayout.console import console
from forcelayout.errors import PartitionError


@dataclass(frozen=True)
class GraphArrays:
    """A graph reduced to index arrays."""

    num_points: int
    edges: np.ndarray          # (E, 2) int32 (src, dst)
    kinds: np.ndarray          # (E,) int32, edge kind 0 or 1
    labels: tuple[Hashable, ...] = field(default=())

    def __post_init__(self) -> None:
        edges = np.asarray(self.edges, dtype=np.int32).reshape(-1, 2)
        kinds = np.asarray(self.kinds, dtype=np.int32).reshape(-1)
        if kinds.shape[0] != edges.shape[0]:
            raise ValueError(f"kinds has {kinds.shape[0]} entries for {edges.shape[0]} edges")
        if self.num_points < 0:
            raise ValueError(f"num_points must be >= 0, got {self.num_points}")
        if edges.size and (edges.min() < 0 or edges.max() >= self.num_points):
            raise PartitionError(f"edge endpoint out of range [0, {self.num_points})")
        if kinds.size and not np.isin(kinds, (0, 1)).all():
            raise ValueError("edge kinds must be 0 or 1")
        object.__setattr__(self, "edges", edges)
        object.__setattr__(self, "kinds", kinds)

    @property
    def num_edges(self) -> int:
        return int(self.edges.shape[0])

    @classmethod
    def from_edge_list(
        cls,
        pairs: Iterable[tuple[Hashable, Hashable]],
        kinds: Optional[Sequence[int]] = None,
        *,
        nodes: Iterable[Hashable] = (),
    ) -> "GraphArrays":
        """Label arbitrary node ids in first-seen order and build index arrays.

        `nodes` lists extra (possibly isolated) nodes, labelled before any
        edge endpoint.
        """
        node_to_idx: dict[Hashable, int] = {}

        def add_node(node: Hashable) -> int:
            if node not in node_to_idx:
                node_to_idx[node] = len(node_to_idx)
            return node_to_idx[node]

        for node in nodes:
            add_node(node)

        seen: set[tuple[Hashable, Hashable]] = set()
        edges: list[tuple[int, int]] = []
        for src, dst in pairs:
            if (src, dst) in seen:
                console.warn(f"Edge {src!r} -> {dst!r} is duplicated")
            if (dst, src) in seen:
                console.warn(f"Edge {src!r} <-> {dst!r} has both directions")
            seen.add((src, dst))
            edges.append((add_node(src), add_node(dst)))

        if kinds is None:
            kinds = [0] * len(edges)
        return cls(
            num_points=len(node_to_idx),
            edges=np.asarray(edges, dtype=np.int32).reshape(-1, 2),
            kinds=np.asarray(kinds, dtype=np.int32),
            labels=tuple(node_to_idx),
        )


@dataclass(frozen=True)
class EdgePartition:
    """One directional edge set sorted by destination, plus its work items."""

    edges: np.ndarray          # (E, 2) int32
    tags: np.ndarray           # (E,) int32
    work_items: np.ndarray     # (W, 2) int32 (first_edge, edge_count)

    @property
    def num_edges(self) -> int:
        return int(self.edges.shape[0])

    @property
    def num_work_items(self) -> int:
        return int(self.work_items.shape[0])

    def owners(self) -> np.ndarray:
        """Destination node owned by each work item."""
        if self.num_work_items == 0:
            return np.zeros((0,), dtype=np.int32)
        return self.edges[self.work_items[:, 0], 1]


@dataclass(frozen=True)
class DirectionalEdges:
    forward: EdgePartition
    backward: EdgePartition


def build_partition(edges: np.ndarray, tags: np.ndarray) -> EdgePartition:
    edges = np.asarray(edges, dtype=np.int32).reshape(-1, 2)
    tags = np.asarray(tags, dtype=np.int32).reshape(-1)
    order = np.argsort(edges[:, 1], kind="stable")
    edges = np.ascontiguousarray(edges[order])
    tags = np.ascontiguousarray(tags[order])
    if edges.shape[0] == 0:
        return EdgePartition(edges=edges, tags=tags, work_items=np.zeros((0, 2), dtype=np.int32))
    _, firsts, counts = np.unique(edges[:, 1], return_index=True, return_counts=True)
    work_items = np.stack([firsts, counts], axis=1).astype(np.int32)
    return EdgePartition(edges=edges, tags=tags, work_items=work_items)


def build_directional_edges(graph: GraphArrays) -> DirectionalEdges:
    """Forward set = edges as given, backward set = the same edges reversed."""
    forward = build_partition(graph.edges, graph.kinds)
    backward = build_partition(graph.edges[:, ::-1], graph.kinds)
    return DirectionalEdges(forward=forward, backward=backward)


def validate_partition(part: EdgePartition, num_points: int, *, name: str = "partition") -> None:
    """Raise `PartitionError` unless every destination has exactly one worker."""
    e = part.num_edges
    w = part.num_work_items
    if part.edges.shape != (e, 2) or part.tags.shape != (e,):
        raise PartitionError(f"{name}: edges/tags shape mismatch {part.edges.shape} vs {part.tags.shape}")
    if part.work_items.shape != (w, 2):
        raise PartitionError(f"{name}: work items must have shape (W, 2), got {part.work_items.shape}")
    if e == 0:
        if w != 0:
            raise PartitionError(f"{name}: {w} work items for an empty edge set")
        return
    if part.edges.min() < 0 or part.edges.max() >= num_points:
        raise PartitionError(f"{name}: edge endpoint out of range [0, {num_points})")

    firsts = part.work_items[:, 0].astype(np.int64)
    counts = part.work_items[:, 1].astype(np.int64)
    if (counts < 1).any():
        raise PartitionError(f"{name}: work items must cover at least one edge")
    starts = np.concatenate([[0], np.cumsum(counts)[:-1]])
    if not np.array_equal(firsts, starts) or int(counts.sum()) != e:
        raise PartitionError(f"{name}: work items must tile the edge list contiguously, exactly once")

    item_dst = part.edges[firsts, 1]
    if not np.array_equal(np.repeat(item_dst, counts), part.edges[:, 1]):
        raise PartitionError(f"{name}: a work item covers edges with different destinations")
    if np.unique(item_dst).shape[0] != w:
        raise PartitionError(f"{name}: a destination node is owned by more than one work item")


def validate_directional(edges: DirectionalEdges, num_points: int) -> None:
    validate_partition(edges.forward, num_points, name="forward")
    validate_partition(edges.backward, num_points, name="backward")
    fwd = Counter(
        (int(s), int(d), int(t)) for (s, d), t in zip(edges.forward.edges, edges.forward.tags)
    )
    bwd = Counter(
        (int(d), int(s), int(t)) for (s, d), t in zip(edges.backward.edges, edges.backward.tags)
    )
    if fwd != bwd:
        raise PartitionError("backward edge set is not the reverse of the forward edge set")


def initial_positions(num_points: int, width: float, height: float, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    pos = rng.random((num_points, 2), dtype=np.float32)
    pos *= np.asarray([width, height], dtype=np.float32)
    return pos


def random_graph(num_points: int, num_edges: int, *, seed: int = 0, kind1_fraction: float = 0.0) -> GraphArrays:
    """Random simple directed graph without self loops or reciprocal pairs."""
    rng = np.random.default_rng(seed)
    max_edges = num_points * (num_points - 1) // 2
    num_edges = min(int(num_edges), max_edges)
    chosen: set[tuple[int, int]] = set()
    while len(chosen) < num_edges:
        s, d = (int(x) for x in rng.integers(0, num_points, size=2))
        if s == d or (s, d) in chosen or (d, s) in chosen:
            continue
        chosen.add((s, d))
    edges = np.asarray(sorted(chosen), dtype=np.int32).reshape(-1, 2)
    kinds = (rng.random(edges.shape[0]) < kind1_fraction).astype(np.int32)
    return GraphArrays(num_points=num_points, edges=edges, kinds=kinds)
