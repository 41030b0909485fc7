"""MIP backend interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
import logging
from typing import Any, Optional

import numpy as np

from fragtree.errors import ConsistencyError
from fragtree.model import ConstraintBlock, MIPModel

logger = logging.getLogger(__name__)

# relative to the total absolute weight, covers engine integrality tolerance
OBJECTIVE_TOLERANCE = 1e-6


class SolverState(Enum):
    FINISHED = "finished"
    SHALL_RETURN_NULL = "shall_return_null"
    SHALL_BUILD_SOLUTION = "shall_build_solution"


def reconcile_objective(
    objective: float,
    weights: np.ndarray,
    assignment: np.ndarray,
    *,
    backend: str,
    tolerance: float = OBJECTIVE_TOLERANCE,
) -> float:
    """Check an engine objective against the losses the engine selected.

    Returns the weight sum of the selection, which equals the objective up
    to the engine's integrality tolerance. A larger gap means the engine
    and its reported assignment disagree and raises
    :class:`ConsistencyError`.
    """
    selected = float(weights[assignment].sum()) if assignment.any() else 0.0
    scale = max(1.0, float(np.abs(weights).sum()))
    if not np.isfinite(objective) or abs(objective - selected) > tolerance * scale:
        raise ConsistencyError(
            f"{backend} objective {objective!r} disagrees with its selected losses ({selected!r}).",
            context={"objective": objective, "selected_score": selected},
        )
    return selected


class MIPBackend(ABC):
    """Adapter from a :class:`MIPModel` to one concrete MIP engine.

    A backend instance serves a single solve. ``close`` releases whatever
    the engine holds and is safe to call more than once; using the backend
    as a context manager guarantees the release on every exit path.
    """

    name: str

    def __init__(self) -> None:
        self.num_variables = 0

    def load(self, model: MIPModel) -> None:
        if model.start_values is not None:
            self.define_variables_with_start_values(model.num_variables, model.start_values)
        else:
            self.define_variables(model.num_variables)
        for block in model.blocks:
            self.add_constraint_block(block)
        self.set_objective(model.weights)
        logger.debug(
            "Loaded model into %s backend: %d variables, %d rows.",
            self.name,
            model.num_variables,
            model.count_rows(),
        )

    @abstractmethod
    def define_variables(self, num_variables: int) -> None:
        """Create one binary variable per loss."""

    @abstractmethod
    def define_variables_with_start_values(
        self,
        num_variables: int,
        start_values: np.ndarray,
    ) -> None:
        """Create binary variables seeded with a feasible start solution."""

    @abstractmethod
    def add_constraint_block(self, block: ConstraintBlock) -> None:
        """Add the rows of one constraint family."""

    @abstractmethod
    def set_objective(self, weights: np.ndarray) -> None:
        """Maximize ``weights @ x``."""

    @abstractmethod
    def solve_mip(
        self,
        *,
        time_limit: Optional[float] = None,
        threads: Optional[int] = None,
    ) -> SolverState:
        """Run the engine on the loaded model."""

    @abstractmethod
    def get_variable_assignment(self) -> np.ndarray:
        """Boolean selection of every loss in the solution."""

    @abstractmethod
    def get_solver_score(self) -> float:
        """Engine objective of the solution, checked against the selected losses."""

    def past_build_solution(self) -> SolverState:
        return SolverState.FINISHED

    def close(self) -> None:
        return None

    def __enter__(self) -> "MIPBackend":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = ["OBJECTIVE_TOLERANCE", "SolverState", "MIPBackend", "reconcile_objective"]
