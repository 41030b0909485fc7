"""Source-grouped edge index over a fragmentation graph."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from fragtree.graph import FragmentationGraph


@dataclass(frozen=True)
class EdgeIndex:
    """Loss indices grouped by source vertex.

    ``edge_ids[edge_offsets[v]:edge_offsets[v] + out_degree(v)]`` are the
    losses leaving ``v`` in their original relative order.
    """

    edge_offsets: np.ndarray
    edge_ids: np.ndarray

    def outgoing(self, vertex_id: int, out_degree: int) -> np.ndarray:
        start = int(self.edge_offsets[vertex_id])
        return self.edge_ids[start : start + out_degree]


def build_edge_index(graph: FragmentationGraph) -> EdgeIndex:
    """Group loss indices by source vertex in O(V + E).

    The offset table first holds prefix sums of the out-degrees, then serves
    as the write cursor while losses are placed (bumping each entry by the
    vertex out-degree), and is finally restored to the prefix sums.
    """
    n_vertices = graph.number_of_vertices()
    out_degrees = np.fromiter(
        (fragment.out_degree for fragment in graph),
        dtype=np.int64,
        count=n_vertices,
    )
    edge_offsets = np.zeros(n_vertices, dtype=np.int64)
    if n_vertices > 1:
        np.cumsum(out_degrees[:-1], out=edge_offsets[1:])

    edge_ids = np.empty(graph.number_of_edges(), dtype=np.int64)
    for loss in graph.losses:
        edge_ids[edge_offsets[loss.source]] = loss.index
        edge_offsets[loss.source] += 1
    edge_offsets -= out_degrees

    edge_offsets.setflags(write=False)
    edge_ids.setflags(write=False)
    return EdgeIndex(edge_offsets=edge_offsets, edge_ids=edge_ids)


__all__ = ["EdgeIndex", "build_edge_index"]
