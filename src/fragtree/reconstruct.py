"""Turn a 0/1 loss selection back into a fragmentation tree."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from fragtree.edge_index import EdgeIndex
from fragtree.errors import ConsistencyError
from fragtree.graph import Fragment, FragmentationGraph
from fragtree.tree import FragmentationTree, TreeFragment


def build_solution(
    graph: FragmentationGraph,
    index: EdgeIndex,
    edges_are_used: Sequence[bool] | np.ndarray,
    score: Optional[float] = None,
) -> FragmentationTree:
    """Rebuild the tree selected by ``edges_are_used``.

    The tree root is the target of the single active pseudo-root loss; the
    rest is collected by an iterative depth-first walk over the edge index.
    ``score`` is only bookkeeping and is not trusted here.
    """
    used = np.asarray(edges_are_used, dtype=bool)
    if used.shape != (graph.number_of_edges(),):
        raise ConsistencyError(
            f"Edge assignment has {used.size} entries, graph has {graph.number_of_edges()} losses."
        )
    pseudo_root = graph.root
    root_losses = [
        graph.loss(int(loss_index))
        for loss_index in index.outgoing(pseudo_root.vertex_id, pseudo_root.out_degree)
        if used[loss_index]
    ]
    if len(root_losses) != 1:
        raise ConsistencyError(
            f"Expected exactly one active pseudo-root loss, found {len(root_losses)}.",
            context={"score": score},
        )
    root_loss = root_losses[0]
    graph_root = graph.fragment(root_loss.target)

    tree = FragmentationTree(
        graph_root.formula,
        root_weight=root_loss.weight,
        root_vertex=graph_root.vertex_id,
        root_loss=root_loss.index,
    )
    visited = {graph_root.vertex_id}
    stack: list[tuple[TreeFragment, Fragment]] = [(tree.root, graph_root)]
    while stack:
        tree_node, graph_node = stack.pop()
        for loss_index in index.outgoing(graph_node.vertex_id, graph_node.out_degree):
            if not used[loss_index]:
                continue
            loss = graph.loss(int(loss_index))
            if loss.target in visited:
                raise ConsistencyError(
                    f"Vertex {loss.target} is reached twice while rebuilding the tree."
                )
            visited.add(loss.target)
            target = graph.fragment(loss.target)
            child = tree.add_fragment(
                tree_node,
                target.formula,
                loss.weight,
                vertex_id=target.vertex_id,
                loss_index=loss.index,
            )
            stack.append((child, target))
    return tree


__all__ = ["build_solution"]
