"""Tests for graph arrays and destination-keyed work-item partitions."""

from __future__ import annotations

from collections import Counter

import numpy as np
import pytest

from forcelayout.console import Console
from forcelayout.errors import PartitionError
from forcelayout.graph import (
    DirectionalEdges,
    EdgePartition,
    GraphArrays,
    build_directional_edges,
    build_partition,
    random_graph,
    validate_directional,
    validate_partition,
)


def test_from_edge_list_labels_in_first_seen_order() -> None:
    g = GraphArrays.from_edge_list([("a", "b"), ("b", "c"), ("d", "a")], kinds=[0, 1, 0])
    assert g.labels == ("a", "b", "c", "d")
    assert g.num_points == 4
    assert g.edges.tolist() == [[0, 1], [1, 2], [3, 0]]
    assert g.kinds.tolist() == [0, 1, 0]


def test_from_edge_list_keeps_isolated_nodes() -> None:
    g = GraphArrays.from_edge_list([("x", "y")], nodes=["lonely"])
    assert g.labels == ("lonely", "x", "y")
    assert g.edges.tolist() == [[1, 2]]


def test_graph_rejects_out_of_range_edges() -> None:
    with pytest.raises(PartitionError):
        GraphArrays(num_points=2, edges=np.array([[0, 2]]), kinds=np.array([0]))


def test_graph_rejects_unknown_kinds() -> None:
    with pytest.raises(ValueError):
        GraphArrays(num_points=2, edges=np.array([[0, 1]]), kinds=np.array([2]))


def test_partition_groups_edges_by_destination() -> None:
    edges = np.array([[0, 2], [1, 3], [4, 2], [3, 2]], dtype=np.int32)
    part = build_partition(edges, np.array([0, 1, 0, 1]))
    assert part.edges[:, 1].tolist() == [2, 2, 2, 3]
    # stable within one destination
    assert part.edges[:, 0].tolist() == [0, 4, 3, 1]
    assert part.tags.tolist() == [0, 0, 1, 1]
    assert part.work_items.tolist() == [[0, 3], [3, 1]]
    assert part.owners().tolist() == [2, 3]
    validate_partition(part, num_points=5)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_directional_sets_mirror_each_other(seed: int) -> None:
    g = random_graph(40, 120, seed=seed, kind1_fraction=0.3)
    d = build_directional_edges(g)
    validate_directional(d, g.num_points)

    fwd = Counter((int(s), int(t)) for s, t in d.forward.edges)
    bwd = Counter((int(t), int(s)) for s, t in d.backward.edges)
    assert fwd == bwd

    for part in (d.forward, d.backward):
        owners = part.owners()
        # no two workers share a destination
        assert len(set(owners.tolist())) == part.num_work_items
        assert int(part.work_items[:, 1].sum()) == part.num_edges


def test_empty_partition() -> None:
    g = GraphArrays(num_points=5, edges=np.zeros((0, 2)), kinds=np.zeros((0,)))
    d = build_directional_edges(g)
    assert d.forward.num_edges == 0
    assert d.forward.num_work_items == 0
    validate_directional(d, g.num_points)


def test_split_destination_is_rejected() -> None:
    edges = np.array([[0, 2], [1, 2]], dtype=np.int32)
    part = EdgePartition(
        edges=edges,
        tags=np.zeros(2, dtype=np.int32),
        work_items=np.array([[0, 1], [1, 1]], dtype=np.int32),
    )
    with pytest.raises(PartitionError, match="more than one work item"):
        validate_partition(part, num_points=3)


def test_mixed_destination_item_is_rejected() -> None:
    edges = np.array([[0, 1], [1, 2]], dtype=np.int32)
    part = EdgePartition(
        edges=edges,
        tags=np.zeros(2, dtype=np.int32),
        work_items=np.array([[0, 2]], dtype=np.int32),
    )
    with pytest.raises(PartitionError, match="different destinations"):
        validate_partition(part, num_points=3)


def test_gapped_work_items_are_rejected() -> None:
    edges = np.array([[0, 1], [2, 1], [0, 2]], dtype=np.int32)
    part = EdgePartition(
        edges=edges,
        tags=np.zeros(3, dtype=np.int32),
        work_items=np.array([[0, 1], [2, 1]], dtype=np.int32),
    )
    with pytest.raises(PartitionError):
        validate_partition(part, num_points=3)


def test_mismatched_backward_set_is_rejected() -> None:
    g = GraphArrays(num_points=3, edges=np.array([[0, 1], [1, 2]]), kinds=np.array([0, 1]))
    d = build_directional_edges(g)
    wrong_tags = build_partition(g.edges[:, ::-1], np.array([1, 0]))
    with pytest.raises(PartitionError, match="reverse"):
        validate_directional(DirectionalEdges(forward=d.forward, backward=wrong_tags), g.num_points)


def test_random_graph_is_simple() -> None:
    g = random_graph(30, 60, seed=5)
    pairs = {(int(s), int(d)) for s, d in g.edges}
    assert len(pairs) == g.num_edges == 60
    assert all(s != d for s, d in pairs)
    assert all((d, s) not in pairs for s, d in pairs)


def test_duplicate_and_reciprocal_are_warned_independently(monkeypatch) -> None:
    warnings = []
    monkeypatch.setattr(Console, "warn", lambda self, message, *, detail=None: warnings.append(message))
    GraphArrays.from_edge_list([("a", "b"), ("b", "a"), ("b", "a")])
    assert sum("both directions" in w for w in warnings) == 2
    assert sum("duplicated" in w for w in warnings) == 1
