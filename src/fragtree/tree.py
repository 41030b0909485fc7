"""Fragmentation tree returned by the solver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional


@dataclass(eq=False)
class TreeFragment:
    formula: str
    parent: Optional["TreeFragment"] = field(default=None, repr=False)
    weight: float = 0.0
    vertex_id: Optional[int] = None
    children: list["TreeFragment"] = field(default_factory=list, repr=False)
    loss_index: Optional[int] = None

    def is_root(self) -> bool:
        return self.parent is None

    def depth(self) -> int:
        depth = 0
        node = self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth


class FragmentationTree:
    """Rooted tree of fragments; every non-root node stores its incoming loss weight.

    ``root_weight`` is the weight of the pseudo-root loss that selected the
    tree root, so that ``score()`` equals the objective of the colorful
    subtree that produced the tree. ``vertex_id`` and ``loss_index`` link a
    fragment back to the graph vertex and the loss it was built from.
    """

    def __init__(
        self,
        root_formula: str,
        *,
        root_weight: float = 0.0,
        root_vertex: Optional[int] = None,
        root_loss: Optional[int] = None,
    ) -> None:
        self.root = TreeFragment(
            formula=root_formula,
            weight=float(root_weight),
            vertex_id=root_vertex,
            loss_index=root_loss,
        )
        self._size = 1

    def add_fragment(
        self,
        parent: TreeFragment,
        formula: str,
        weight: float,
        vertex_id: Optional[int] = None,
        loss_index: Optional[int] = None,
    ) -> TreeFragment:
        child = TreeFragment(
            formula=formula,
            parent=parent,
            weight=float(weight),
            vertex_id=vertex_id,
            loss_index=loss_index,
        )
        parent.children.append(child)
        self._size += 1
        return child

    def fragments(self) -> Iterator[TreeFragment]:
        """Yield fragments in pre-order."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def losses(self) -> Iterator[tuple[TreeFragment, TreeFragment]]:
        for node in self.fragments():
            for child in node.children:
                yield node, child

    def number_of_vertices(self) -> int:
        return self._size

    def number_of_edges(self) -> int:
        return self._size - 1

    def formulas(self) -> list[str]:
        return [node.formula for node in self.fragments()]

    def score(self) -> float:
        return sum(node.weight for node in self.fragments())

    def to_dict(self) -> dict[str, Any]:
        def _node(node: TreeFragment) -> dict[str, Any]:
            payload: dict[str, Any] = {"formula": node.formula, "weight": node.weight}
            if node.vertex_id is not None:
                payload["vertex_id"] = node.vertex_id
            if node.loss_index is not None:
                payload["loss_index"] = node.loss_index
            if node.children:
                payload["children"] = [_node(child) for child in node.children]
            return payload

        return {"score": self.score(), "root": _node(self.root)}

    def __repr__(self) -> str:
        return (
            f"FragmentationTree(root={self.root.formula!r}, "
            f"vertices={self._size}, score={self.score():.6g})"
        )


__all__ = ["TreeFragment", "FragmentationTree"]
