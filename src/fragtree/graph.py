"""Fragmentation graph model consumed by the colorful subtree solver."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
import math
from typing import Any

import networkx as nx

from fragtree.errors import GraphError


@dataclass(frozen=True)
class Loss:
    """Scored edge between two fragments; its color is the target formula."""

    index: int
    source: int
    target: int
    weight: float
    color: str


@dataclass(frozen=True)
class Fragment:
    vertex_id: int
    formula: str
    incoming: tuple[int, ...]
    outgoing: tuple[int, ...]

    @property
    def in_degree(self) -> int:
        return len(self.incoming)

    @property
    def out_degree(self) -> int:
        return len(self.outgoing)


class FragmentationGraph:
    """Immutable DAG of candidate fragments rooted at a pseudo-root.

    Vertices are numbered ``0..V-1`` and losses ``0..E-1``. Outgoing losses
    of a fragment keep the order in which they were added; the solver's edge
    index relies on that order being stable.
    """

    def __init__(
        self,
        fragments: Sequence[Fragment],
        losses: Sequence[Loss],
        root: int,
    ) -> None:
        self._fragments = tuple(fragments)
        self._losses = tuple(losses)
        if not 0 <= root < len(self._fragments):
            raise GraphError(f"Root vertex {root} is not part of the graph.")
        self._root = root

    @property
    def root(self) -> Fragment:
        return self._fragments[self._root]

    @property
    def losses(self) -> tuple[Loss, ...]:
        return self._losses

    @property
    def fragments(self) -> tuple[Fragment, ...]:
        return self._fragments

    def __iter__(self) -> Iterator[Fragment]:
        return iter(self._fragments)

    def __len__(self) -> int:
        return len(self._fragments)

    def number_of_vertices(self) -> int:
        return len(self._fragments)

    def number_of_edges(self) -> int:
        return len(self._losses)

    def fragment(self, vertex_id: int) -> Fragment:
        return self._fragments[vertex_id]

    def loss(self, index: int) -> Loss:
        return self._losses[index]

    def out_degree(self, vertex_id: int) -> int:
        return self._fragments[vertex_id].out_degree

    def in_degree(self, vertex_id: int) -> int:
        return self._fragments[vertex_id].in_degree

    def outgoing_losses(self, vertex_id: int) -> list[Loss]:
        return [self._losses[idx] for idx in self._fragments[vertex_id].outgoing]

    def incoming_losses(self, vertex_id: int) -> list[Loss]:
        return [self._losses[idx] for idx in self._fragments[vertex_id].incoming]

    def colors(self) -> dict[str, list[int]]:
        """Map each color to the vertices carrying it (only vertices with incoming losses)."""
        colors: dict[str, list[int]] = {}
        for fragment in self._fragments:
            if fragment.in_degree == 0:
                continue
            colors.setdefault(fragment.formula, []).append(fragment.vertex_id)
        return colors

    def to_networkx(self) -> nx.MultiDiGraph:
        graph = nx.MultiDiGraph()
        for fragment in self._fragments:
            graph.add_node(fragment.vertex_id, formula=fragment.formula)
        for loss in self._losses:
            graph.add_edge(
                loss.source,
                loss.target,
                key=loss.index,
                weight=loss.weight,
                color=loss.color,
            )
        return graph

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": self._root,
            "fragments": [fragment.formula for fragment in self._fragments],
            "losses": [
                {"source": loss.source, "target": loss.target, "weight": loss.weight}
                for loss in self._losses
            ],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FragmentationGraph":
        if not isinstance(payload, Mapping):
            raise GraphError("Graph payload must be a mapping.")
        fragments = payload.get("fragments")
        losses = payload.get("losses", [])
        if isinstance(fragments, (str, bytes)) or not isinstance(fragments, Sequence):
            raise GraphError("Graph payload 'fragments' must be a sequence.")
        if isinstance(losses, (str, bytes)) or not isinstance(losses, Sequence):
            raise GraphError("Graph payload 'losses' must be a sequence.")
        builder = GraphBuilder()
        for entry in fragments:
            if isinstance(entry, Mapping):
                entry = entry.get("formula", "")
            if not isinstance(entry, str):
                raise GraphError(f"Fragment formula must be a string, got {entry!r}.")
            builder.add_fragment(entry)
        for entry in losses:
            if not isinstance(entry, Mapping):
                raise GraphError(f"Loss entry must be a mapping, got {entry!r}.")
            try:
                builder.add_loss(
                    int(entry["source"]),
                    int(entry["target"]),
                    float(entry["weight"]),
                )
            except KeyError as exc:
                raise GraphError(f"Loss entry missing field {exc.args[0]!r}.") from exc
            except (TypeError, ValueError) as exc:
                raise GraphError(f"Invalid loss entry {dict(entry)!r}: {exc}") from exc
        try:
            root = int(payload.get("root", 0))
        except (TypeError, ValueError) as exc:
            raise GraphError(f"Graph root must be an integer, got {payload.get('root')!r}.") from exc
        return builder.build(root=root)


class GraphBuilder:
    """Collect fragments and losses, then freeze them into a graph."""

    def __init__(self) -> None:
        self._formulas: list[str] = []
        self._edges: list[tuple[int, int, float]] = []

    def add_fragment(self, formula: str) -> int:
        self._formulas.append(str(formula))
        return len(self._formulas) - 1

    def add_loss(self, source: int, target: int, weight: float) -> int:
        for label, vertex in (("source", source), ("target", target)):
            if not 0 <= vertex < len(self._formulas):
                raise GraphError(f"Loss {label} {vertex} is not a known fragment.")
        if source == target:
            raise GraphError(f"Self loop on fragment {source} is not allowed.")
        weight = float(weight)
        if not math.isfinite(weight):
            raise GraphError(f"Loss {source}->{target} has non-finite weight {weight!r}.")
        self._edges.append((source, target, weight))
        return len(self._edges) - 1

    def build(self, root: int = 0) -> FragmentationGraph:
        if not self._formulas:
            raise GraphError("Graph must contain at least the root fragment.")
        incoming: list[list[int]] = [[] for _ in self._formulas]
        outgoing: list[list[int]] = [[] for _ in self._formulas]
        losses = []
        for index, (source, target, weight) in enumerate(self._edges):
            losses.append(
                Loss(
                    index=index,
                    source=source,
                    target=target,
                    weight=weight,
                    color=self._formulas[target],
                )
            )
            outgoing[source].append(index)
            incoming[target].append(index)
        fragments = [
            Fragment(
                vertex_id=vertex_id,
                formula=formula,
                incoming=tuple(incoming[vertex_id]),
                outgoing=tuple(outgoing[vertex_id]),
            )
            for vertex_id, formula in enumerate(self._formulas)
        ]
        graph = FragmentationGraph(fragments, losses, root)
        if graph.root.in_degree:
            raise GraphError(
                f"Root fragment {root} must not have incoming losses.",
                context={"in_degree": graph.root.in_degree},
            )
        if not nx.is_directed_acyclic_graph(graph.to_networkx()):
            raise GraphError("Fragmentation graph must be acyclic.")
        return graph


__all__ = ["Fragment", "Loss", "FragmentationGraph", "GraphBuilder"]
