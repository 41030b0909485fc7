"""Independent checks of solver output against the fragmentation graph."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from fragtree.errors import ConsistencyError
from fragtree.graph import FragmentationGraph, Loss
from fragtree.tree import FragmentationTree, TreeFragment

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-9


def _is_pseudo(node: TreeFragment) -> bool:
    return not node.formula


def _recorded_loss(
    graph: FragmentationGraph,
    parent_vertex: int,
    node: TreeFragment,
) -> Loss:
    if not 0 <= node.loss_index < graph.number_of_edges():
        raise ConsistencyError(
            f"Tree fragment {node.formula!r} records unknown loss {node.loss_index}."
        )
    loss = graph.loss(node.loss_index)
    if (
        loss.source != parent_vertex
        or loss.color != node.formula
        or (node.vertex_id is not None and loss.target != node.vertex_id)
    ):
        raise ConsistencyError(
            f"Tree fragment {node.formula!r} records loss {loss.index} "
            f"({loss.source}->{loss.target}), which does not leave vertex "
            f"{parent_vertex} towards that formula."
        )
    return loss


def _match_child(
    graph: FragmentationGraph,
    parent_vertex: int,
    node: TreeFragment,
) -> Loss:
    """Find the loss from ``parent_vertex`` that produced ``node``.

    The recorded ``loss_index`` wins. Otherwise candidates are narrowed by
    formula, then by ``vertex_id``, then by the fragment's weight, which
    separates parallel losses between the same two vertices.
    """
    if node.loss_index is not None:
        return _recorded_loss(graph, parent_vertex, node)
    candidates = [
        loss
        for loss in graph.outgoing_losses(parent_vertex)
        if loss.color == node.formula
    ]
    if node.vertex_id is not None:
        candidates = [loss for loss in candidates if loss.target == node.vertex_id]
        if not candidates:
            raise ConsistencyError(
                f"Tree fragment {node.formula!r} claims vertex {node.vertex_id}, "
                f"which is not a child of vertex {parent_vertex} with that formula."
            )
    if not candidates:
        raise ConsistencyError(
            f"Tree fragment {node.formula!r} has no matching loss from vertex {parent_vertex}."
        )
    if len(candidates) > 1:
        candidates = [loss for loss in candidates if loss.weight == node.weight] or candidates
    if len({(loss.target, loss.weight) for loss in candidates}) > 1:
        raise ConsistencyError(
            f"Tree fragment {node.formula!r} is ambiguous below vertex {parent_vertex}: "
            f"candidates {[loss.target for loss in candidates]}."
        )
    return candidates[0]


def map_tree_losses(
    tree: FragmentationTree,
    graph: FragmentationGraph,
) -> dict[TreeFragment, Loss]:
    """Map tree fragments onto the graph losses that produced them.

    The tree root is matched among the losses leaving the graph's
    pseudo-root, every other fragment among the losses leaving the vertex
    its parent was mapped to. Fragments with an empty formula are pseudo
    fragments: they are located like any other fragment so that their
    descendants can be matched, and a childless pseudo fragment that cannot
    be located is left out.
    """
    losses: dict[TreeFragment, Loss] = {}
    seen: set[int] = set()
    stack: list[tuple[TreeFragment, int]] = [(tree.root, graph.root.vertex_id)]
    while stack:
        node, parent_vertex = stack.pop()
        try:
            loss = _match_child(graph, parent_vertex, node)
        except ConsistencyError:
            if _is_pseudo(node) and not node.children:
                continue
            raise
        if loss.target in seen:
            raise ConsistencyError(f"Graph vertex {loss.target} is mapped twice.")
        seen.add(loss.target)
        losses[node] = loss
        stack.extend((child, loss.target) for child in node.children)
    return losses


def create_fragment_mapping(
    tree: FragmentationTree,
    graph: FragmentationGraph,
) -> dict[TreeFragment, int]:
    """Graph vertex id of every located tree fragment."""
    return {node: loss.target for node, loss in map_tree_losses(tree, graph).items()}


def recompute_score(tree: FragmentationTree, graph: FragmentationGraph) -> float:
    """Sum the graph weights of the losses the tree was built from."""
    losses = map_tree_losses(tree, graph)
    score = 0.0
    for node in tree.fragments():
        if _is_pseudo(node):
            # pseudo losses are trusted
            score += node.weight
        else:
            score += losses[node].weight
    return score


def is_computation_correct(
    tree: FragmentationTree,
    graph: FragmentationGraph,
    score: float,
    *,
    tolerance: float = DEFAULT_TOLERANCE,
) -> bool:
    try:
        recomputed = recompute_score(tree, graph)
    except ConsistencyError as exc:
        logger.error("Tree does not map onto the graph: %s", exc)
        return False
    return abs(score - recomputed) < tolerance


def verify_solution(
    tree: FragmentationTree,
    graph: FragmentationGraph,
    score: float,
    *,
    tolerance: float = DEFAULT_TOLERANCE,
) -> float:
    """Raise :class:`ConsistencyError` unless ``tree`` reproduces ``score``."""
    recomputed = recompute_score(tree, graph)
    residual = score - recomputed
    if abs(residual) >= tolerance:
        raise ConsistencyError(
            "Can't find a feasible solution: Solution is buggy.",
            context={
                "reported_score": score,
                "recomputed_score": recomputed,
                "residual": residual,
            },
        )
    return recomputed


def assignment_violations(
    graph: FragmentationGraph,
    assignment: Sequence[bool] | np.ndarray,
) -> list[str]:
    """List colorfulness and treeness violations of a raw edge selection."""
    active = np.asarray(assignment, dtype=bool)
    if active.shape != (graph.number_of_edges(),):
        return [
            f"Assignment has shape {active.shape}, expected ({graph.number_of_edges()},)."
        ]
    violations: list[str] = []
    root_id = graph.root.vertex_id

    for color, vertices in graph.colors().items():
        selected = sum(
            int(active[index])
            for vertex_id in vertices
            for index in graph.fragment(vertex_id).incoming
        )
        if selected > 1:
            violations.append(f"Color {color!r} is selected {selected} times.")

    parent: dict[int, Optional[int]] = {}
    for fragment in graph:
        incoming = [index for index in fragment.incoming if active[index]]
        if len(incoming) > 1:
            violations.append(
                f"Vertex {fragment.vertex_id} has {len(incoming)} active incoming losses."
            )
        if incoming:
            parent[fragment.vertex_id] = graph.loss(incoming[0]).source

    root_edges = [loss for loss in graph.outgoing_losses(root_id) if active[loss.index]]
    if len(root_edges) != 1:
        violations.append(f"Pseudo-root has {len(root_edges)} active losses, expected 1.")

    for loss in graph.losses:
        if not active[loss.index]:
            continue
        vertex: Optional[int] = loss.source
        steps = 0
        while vertex is not None and vertex != root_id:
            vertex = parent.get(vertex)
            steps += 1
            if steps > graph.number_of_vertices():
                break
        if vertex != root_id:
            violations.append(
                f"Loss {loss.index} ({loss.source}->{loss.target}) is not connected to the root."
            )
    return violations


def check_assignment(
    graph: FragmentationGraph,
    assignment: Sequence[bool] | np.ndarray,
) -> None:
    violations = assignment_violations(graph, assignment)
    if violations:
        raise ConsistencyError(
            f"Edge assignment violates the colorful tree constraints: {violations[0]}",
            context={"violations": violations},
        )


__all__ = [
    "DEFAULT_TOLERANCE",
    "map_tree_losses",
    "create_fragment_mapping",
    "recompute_score",
    "is_computation_correct",
    "verify_solution",
    "assignment_violations",
    "check_assignment",
]
