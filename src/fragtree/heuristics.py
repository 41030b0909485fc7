"""Heuristic tree builders used to warm start the MIP."""

from __future__ import annotations

import heapq
import logging
import math
from typing import Any, Optional, Protocol, runtime_checkable

from fragtree.graph import FragmentationGraph
from fragtree.registry import register
from fragtree.tree import FragmentationTree, TreeFragment

logger = logging.getLogger(__name__)


@runtime_checkable
class TreeBuilder(Protocol):
    def build_tree(
        self,
        input: Any,
        graph: FragmentationGraph,
        lower_bound: float,
    ) -> Optional[FragmentationTree]:
        ...


class GreedyTreeBuilder:
    """Grow a colorful tree by always taking the heaviest admissible loss.

    Starts from the best pseudo-root loss and keeps adding the heaviest
    positive loss leaving the tree whose target color is still unused.
    The result is feasible but usually not optimal.
    """

    name = "greedy"

    def build_tree(
        self,
        input: Any,
        graph: FragmentationGraph,
        lower_bound: float = -math.inf,
    ) -> Optional[FragmentationTree]:
        root_losses = graph.outgoing_losses(graph.root.vertex_id)
        if not root_losses:
            return None
        start = max(root_losses, key=lambda loss: loss.weight)
        tree = FragmentationTree(
            graph.fragment(start.target).formula,
            root_weight=start.weight,
            root_vertex=start.target,
            root_loss=start.index,
        )
        used_colors = {start.color}
        nodes: dict[int, TreeFragment] = {start.target: tree.root}
        heap: list[tuple[float, int]] = []

        def _push(vertex_id: int) -> None:
            for loss in graph.outgoing_losses(vertex_id):
                if loss.weight > 0:
                    heapq.heappush(heap, (-loss.weight, loss.index))

        _push(start.target)
        while heap:
            _, loss_index = heapq.heappop(heap)
            loss = graph.loss(loss_index)
            if loss.color in used_colors or loss.target in nodes:
                continue
            used_colors.add(loss.color)
            nodes[loss.target] = tree.add_fragment(
                nodes[loss.source],
                loss.color,
                loss.weight,
                vertex_id=loss.target,
                loss_index=loss.index,
            )
            _push(loss.target)

        score = tree.score()
        if score < lower_bound:
            logger.debug("Greedy tree scores %.6g, below lower bound %.6g.", score, lower_bound)
            return None
        logger.debug("Greedy tree with %d fragments scores %.6g.", tree.number_of_vertices(), score)
        return tree


register("heuristic", GreedyTreeBuilder.name, GreedyTreeBuilder)

__all__ = ["TreeBuilder", "GreedyTreeBuilder"]
