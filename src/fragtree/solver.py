"""Colorful subtree solver driver."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import logging
import math
import time
from typing import Any, Optional, Union

from fragtree.backends.base import MIPBackend, SolverState
from fragtree.config.schema import DEFAULT_TOLERANCE, SolverConfig
from fragtree.edge_index import EdgeIndex, build_edge_index
from fragtree.errors import ConsistencyError, FragtreeError, SolverError
from fragtree.graph import FragmentationGraph
from fragtree.heuristics import TreeBuilder
from fragtree.model import MIPModel, MIPModelBuilder
from fragtree.reconstruct import build_solution
from fragtree.registry import resolve_backend, resolve_heuristic
from fragtree.tree import FragmentationTree
from fragtree.verify import check_assignment, verify_solution

logger = logging.getLogger(__name__)

BackendFactory = Callable[..., MIPBackend]


class SolveResult:
    """Outcome of :meth:`ColorfulSubtreeSolver.solve`."""

    tree: Optional[FragmentationTree] = None
    score: Optional[float] = None

    @property
    def is_optimal(self) -> bool:
        return False


@dataclass(frozen=True)
class Optimal(SolveResult):
    tree: FragmentationTree
    score: float

    @property
    def is_optimal(self) -> bool:
        return True


@dataclass(frozen=True)
class Infeasible(SolveResult):
    """No colorful subtree reaches the lower bound within the time budget."""

    reason: str = "infeasible"


@dataclass(frozen=True)
class Rejected(SolveResult):
    """The backend discarded a solution after it was built."""

    reason: str = "rejected by backend"


def _resolve_backend_factory(backend: Union[str, BackendFactory]) -> BackendFactory:
    if isinstance(backend, str):
        return resolve_backend(backend)
    if not callable(backend):
        raise SolverError(f"Backend must be a name or a factory, got {backend!r}.")
    return backend


def _resolve_feasible_solver(
    feasible_solver: Union[str, TreeBuilder, None],
) -> Optional[TreeBuilder]:
    if feasible_solver is None or not isinstance(feasible_solver, str):
        return feasible_solver
    return resolve_heuristic(feasible_solver)()


class ColorfulSubtreeSolver:
    """Find the maximum-score colorful subtree of a fragmentation graph.

    One instance handles one graph. The edge index and the MIP model are
    rebuilt for every :meth:`solve` call and handed to a fresh backend
    instance, which is closed before :meth:`solve` returns.
    """

    def __init__(
        self,
        graph: FragmentationGraph,
        *,
        backend: Union[str, BackendFactory] = "highs",
        backend_options: Optional[Mapping[str, Any]] = None,
        lower_bound: float = -math.inf,
        feasible_solver: Union[str, TreeBuilder, None] = None,
        input: Any = None,
        time_limit: int = 0,
        seconds_per_decomposition: int = 0,
        num_cpus: int = 1,
        tolerance: float = DEFAULT_TOLERANCE,
        strict: bool = False,
    ) -> None:
        if graph is None:
            raise SolverError("Cannot solve graph: graph is None.")
        self.graph = graph
        self.backend_factory = _resolve_backend_factory(backend)
        self.backend_options = dict(backend_options or {})
        self.lower_bound = float(lower_bound)
        self.feasible_solver = _resolve_feasible_solver(feasible_solver)
        self.input = input
        self.time_limit = max(int(time_limit), 0)
        self.seconds_per_decomposition = max(int(seconds_per_decomposition), 0)
        self.num_cpus = max(int(num_cpus), 1)
        self.tolerance = float(tolerance)
        self.strict = strict
        self._deadline: Optional[float] = None
        self._index: Optional[EdgeIndex] = None

    @classmethod
    def from_config(
        cls,
        graph: FragmentationGraph,
        config: SolverConfig,
        **kwargs: Any,
    ) -> "ColorfulSubtreeSolver":
        return cls(
            graph,
            backend=config.backend,
            lower_bound=config.lower_bound,
            feasible_solver=config.warm_start,
            time_limit=config.time_limit,
            seconds_per_decomposition=config.seconds_per_decomposition,
            num_cpus=config.num_cpus,
            tolerance=config.tolerance,
            **kwargs,
        )

    def reset_time_limit(self) -> None:
        """Start the per-decomposition clock."""
        if self.seconds_per_decomposition > 0:
            self._deadline = time.monotonic() + self.seconds_per_decomposition
        else:
            self._deadline = None

    def remaining_time(self) -> Optional[float]:
        """Seconds the backend may spend, or None when unbounded."""
        limits = []
        if self.time_limit > 0:
            limits.append(float(self.time_limit))
        if self._deadline is not None:
            limits.append(max(self._deadline - time.monotonic(), 0.0))
        return min(limits) if limits else None

    def prepare_solver(self) -> MIPModel:
        self._index = build_edge_index(self.graph)
        builder = MIPModelBuilder(self.graph, self._index)
        if self.feasible_solver is not None:
            presolved = self.feasible_solver.build_tree(self.input, self.graph, self.lower_bound)
            builder.define_variables_with_start_values(presolved)
        else:
            builder.define_variables()
        builder.set_constraints()
        builder.apply_lower_bound(self.lower_bound)
        builder.set_objective()
        return builder.build()

    def solve(self) -> SolveResult:
        try:
            return self._solve()
        except ConsistencyError:
            logger.error("Colorful subtree computation produced an inconsistent result.")
            raise
        except Exception as exc:
            message = exc.user_message if isinstance(exc, FragtreeError) else str(exc)
            raise SolverError(
                message or type(exc).__name__,
                context={"vertices": self.graph.number_of_vertices(), "edges": self.graph.number_of_edges()},
            ) from exc

    def _solve(self) -> SolveResult:
        root = self.graph.root
        if root.out_degree == 0:
            return Infeasible("pseudo-root has no outgoing loss")
        if self.graph.number_of_edges() == 1:
            loss = self.graph.losses[0]
            tree = build_solution(self.graph, build_edge_index(self.graph), [True], loss.weight)
            return Optimal(tree=tree, score=loss.weight)

        self.reset_time_limit()
        model = self.prepare_solver()
        time_limit = self.remaining_time()
        if time_limit is not None and time_limit <= 0:
            return Infeasible("time limit exhausted")

        with self.backend_factory(**self.backend_options) as backend:
            logger.debug(
                "Solving %d variables / %d rows with %s backend (time limit %s).",
                model.num_variables,
                model.count_rows(),
                backend.name,
                time_limit,
            )
            backend.load(model)
            signal = backend.solve_mip(time_limit=time_limit, threads=self.num_cpus)
            if signal is SolverState.SHALL_RETURN_NULL:
                logger.info("No colorful subtree above lower bound %.6g.", self.lower_bound)
                return Infeasible()

            score = backend.get_solver_score()
            assignment = backend.get_variable_assignment()
            if self.strict:
                check_assignment(self.graph, assignment)
            tree = build_solution(self.graph, self._index, assignment, score)
            verify_solution(tree, self.graph, score, tolerance=self.tolerance)

            signal = backend.past_build_solution()
            if signal is SolverState.SHALL_RETURN_NULL:
                logger.info("Backend rejected the solution after reconstruction.")
                return Rejected()

        logger.info(
            "Optimal colorful subtree: %d fragments, score %.6g.",
            tree.number_of_vertices(),
            score,
        )
        return Optimal(tree=tree, score=score)


def solve_colorful_subtree(
    graph: FragmentationGraph,
    config: Optional[SolverConfig] = None,
    **overrides: Any,
) -> SolveResult:
    config = (config or SolverConfig()).replace(**overrides)
    return ColorfulSubtreeSolver.from_config(graph, config).solve()


__all__ = [
    "SolveResult",
    "Optimal",
    "Infeasible",
    "Rejected",
    "ColorfulSubtreeSolver",
    "solve_colorful_subtree",
]
