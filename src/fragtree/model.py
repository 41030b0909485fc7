"""Solver-independent MIP model for the colorful subtree problem."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Optional

import numpy as np
import scipy.sparse as sp

from fragtree.edge_index import EdgeIndex
from fragtree.errors import ConsistencyError
from fragtree.graph import FragmentationGraph
from fragtree.tree import FragmentationTree
from fragtree.verify import map_tree_losses

logger = logging.getLogger(__name__)

TREE_CONSTRAINT = "tree"
COLOR_CONSTRAINT = "color"
MINIMAL_TREE_SIZE_CONSTRAINT = "minimal_tree_size"
LOWER_BOUND_CONSTRAINT = "lower_bound"

_REQUIRED_BLOCKS = (TREE_CONSTRAINT, COLOR_CONSTRAINT, MINIMAL_TREE_SIZE_CONSTRAINT)


@dataclass(frozen=True)
class ConstraintBlock:
    """Rows ``lower <= matrix @ x <= upper`` of one constraint family."""

    name: str
    matrix: sp.csr_matrix
    lower: np.ndarray
    upper: np.ndarray

    @property
    def num_rows(self) -> int:
        return int(self.matrix.shape[0])


@dataclass(frozen=True)
class MIPModel:
    """Ready-to-solve binary program: maximize ``weights @ x``."""

    num_variables: int
    weights: np.ndarray
    blocks: tuple[ConstraintBlock, ...]
    lower_bound: float = -math.inf
    start_values: Optional[np.ndarray] = None

    def block(self, name: str) -> ConstraintBlock:
        for block in self.blocks:
            if block.name == name:
                return block
        raise KeyError(f"Model has no constraint block {name!r}.")

    def count_rows(self) -> int:
        return sum(block.num_rows for block in self.blocks)

    def stacked(self) -> tuple[sp.csr_matrix, np.ndarray, np.ndarray]:
        matrix = sp.vstack([block.matrix for block in self.blocks], format="csr")
        lower = np.concatenate([block.lower for block in self.blocks])
        upper = np.concatenate([block.upper for block in self.blocks])
        return matrix, lower, upper

    def objective_value(self, assignment: np.ndarray) -> float:
        return float(self.weights @ np.asarray(assignment, dtype=float))


def _block(
    name: str,
    rows: list[list[tuple[int, float]]],
    lower: list[float],
    upper: list[float],
    num_variables: int,
) -> ConstraintBlock:
    data: list[float] = []
    indices: list[int] = []
    indptr = [0]
    for row in rows:
        for column, coefficient in row:
            indices.append(column)
            data.append(coefficient)
        indptr.append(len(indices))
    matrix = sp.csr_matrix(
        (np.asarray(data, dtype=float), np.asarray(indices, dtype=np.int64), np.asarray(indptr)),
        shape=(len(rows), num_variables),
    )
    matrix.sum_duplicates()
    return ConstraintBlock(
        name=name,
        matrix=matrix,
        lower=np.asarray(lower, dtype=float),
        upper=np.asarray(upper, dtype=float),
    )


class MIPModelBuilder:
    """Translate a fragmentation graph into a :class:`MIPModel`.

    Variable ``i`` is the binary selection of loss ``i``. The builder
    produces exactly one model; calling :meth:`build` before every
    constraint family and the objective were added is an error.
    """

    def __init__(self, graph: FragmentationGraph, index: EdgeIndex) -> None:
        self.graph = graph
        self.index = index
        self.num_variables = graph.number_of_edges()
        self._variables_defined = False
        self._start_values: Optional[np.ndarray] = None
        self._blocks: dict[str, ConstraintBlock] = {}
        self._weights: Optional[np.ndarray] = None
        self._lower_bound = -math.inf
        self._built = False

    def _require_variables(self) -> None:
        if not self._variables_defined:
            raise ConsistencyError("Variables must be defined before constraints.")

    def _outgoing(self, vertex_id: int) -> np.ndarray:
        return self.index.outgoing(vertex_id, self.graph.out_degree(vertex_id))

    def define_variables(self) -> "MIPModelBuilder":
        self._variables_defined = True
        return self

    def define_variables_with_start_values(
        self,
        presolved_tree: Optional[FragmentationTree],
    ) -> "MIPModelBuilder":
        """Define variables and seed them from a heuristic tree.

        A loss starts at 1 when it maps onto an edge of ``presolved_tree``
        (including the pseudo-root loss selecting the tree root), else 0.
        """
        self.define_variables()
        if presolved_tree is None:
            return self
        try:
            tree_losses = map_tree_losses(presolved_tree, self.graph)
        except ConsistencyError as exc:
            logger.warning("Warm start tree does not match the graph, starting cold: %s", exc)
            return self
        start = np.zeros(self.num_variables, dtype=float)
        for loss in tree_losses.values():
            start[loss.index] = 1.0
        self._start_values = start
        logger.debug(
            "Seeded %d of %d variables from warm start tree.",
            int(start.sum()),
            self.num_variables,
        )
        return self

    def set_tree_constraint(self) -> "MIPModelBuilder":
        """For every outgoing loss e of a non-root vertex: sum(incoming) - x_e >= 0.

        One row per loss, so a reached vertex may keep several children.
        """
        self._require_variables()
        rows: list[list[tuple[int, float]]] = []
        root_id = self.graph.root.vertex_id
        for fragment in self.graph:
            if fragment.vertex_id == root_id:
                continue
            incoming = [(index, 1.0) for index in fragment.incoming]
            for loss_index in self._outgoing(fragment.vertex_id):
                rows.append([*incoming, (int(loss_index), -1.0)])
        self._blocks[TREE_CONSTRAINT] = _block(
            TREE_CONSTRAINT,
            rows,
            [0.0] * len(rows),
            [math.inf] * len(rows),
            self.num_variables,
        )
        return self

    def set_color_constraint(self) -> "MIPModelBuilder":
        """For every color: sum of incoming losses over its vertices <= 1."""
        self._require_variables()
        rows: list[list[tuple[int, float]]] = []
        for vertices in self.graph.colors().values():
            rows.append(
                [
                    (index, 1.0)
                    for vertex_id in vertices
                    for index in self.graph.fragment(vertex_id).incoming
                ]
            )
        self._blocks[COLOR_CONSTRAINT] = _block(
            COLOR_CONSTRAINT,
            rows,
            [-math.inf] * len(rows),
            [1.0] * len(rows),
            self.num_variables,
        )
        return self

    def set_minimal_tree_size_constraint(self) -> "MIPModelBuilder":
        """Exactly one loss leaves the pseudo-root.

        The pseudo-root children are alternative precursor explanations, so
        the tree is non-empty and has a single root.
        """
        self._require_variables()
        row = [(int(index), 1.0) for index in self._outgoing(self.graph.root.vertex_id)]
        self._blocks[MINIMAL_TREE_SIZE_CONSTRAINT] = _block(
            MINIMAL_TREE_SIZE_CONSTRAINT,
            [row],
            [1.0],
            [1.0],
            self.num_variables,
        )
        return self

    def set_constraints(self) -> "MIPModelBuilder":
        return (
            self.set_tree_constraint()
            .set_color_constraint()
            .set_minimal_tree_size_constraint()
        )

    def apply_lower_bound(self, lower_bound: float) -> "MIPModelBuilder":
        """Cut off every solution scoring below ``lower_bound``."""
        self._require_variables()
        self._lower_bound = float(lower_bound)
        if math.isinf(self._lower_bound) and self._lower_bound < 0:
            self._blocks.pop(LOWER_BOUND_CONSTRAINT, None)
            return self
        if math.isnan(self._lower_bound) or self._lower_bound == math.inf:
            raise ConsistencyError(f"Invalid lower bound {lower_bound!r}.")
        row = [(loss.index, loss.weight) for loss in self.graph.losses]
        self._blocks[LOWER_BOUND_CONSTRAINT] = _block(
            LOWER_BOUND_CONSTRAINT,
            [row],
            [self._lower_bound],
            [math.inf],
            self.num_variables,
        )
        return self

    def set_objective(self) -> "MIPModelBuilder":
        """Maximize the total weight of the selected losses."""
        self._require_variables()
        self._weights = np.fromiter(
            (loss.weight for loss in self.graph.losses),
            dtype=float,
            count=self.num_variables,
        )
        return self

    def build(self) -> MIPModel:
        if self._built:
            raise ConsistencyError("MIP model was already built.")
        self._require_variables()
        missing = [name for name in _REQUIRED_BLOCKS if name not in self._blocks]
        if missing:
            raise ConsistencyError(f"MIP model is missing constraint families: {missing}.")
        if self._weights is None:
            raise ConsistencyError("MIP model has no objective.")
        order = (*_REQUIRED_BLOCKS, LOWER_BOUND_CONSTRAINT)
        blocks = tuple(self._blocks[name] for name in order if name in self._blocks)
        weights = self._weights.copy()
        weights.setflags(write=False)
        self._built = True
        return MIPModel(
            num_variables=self.num_variables,
            weights=weights,
            blocks=blocks,
            lower_bound=self._lower_bound,
            start_values=self._start_values,
        )


__all__ = [
    "TREE_CONSTRAINT",
    "COLOR_CONSTRAINT",
    "MINIMAL_TREE_SIZE_CONSTRAINT",
    "LOWER_BOUND_CONSTRAINT",
    "ConstraintBlock",
    "MIPModel",
    "MIPModelBuilder",
]
