"""HiGHS backend through scipy.optimize.milp."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import scipy.sparse as sp
from scipy.optimize import Bounds, LinearConstraint, milp

from fragtree.backends.base import MIPBackend, SolverState, reconcile_objective
from fragtree.errors import BackendError
from fragtree.model import ConstraintBlock
from fragtree.registry import register

logger = logging.getLogger(__name__)

# scipy.optimize.milp status codes
_STATUS_OPTIMAL = 0
_STATUS_LIMIT = 1
_STATUS_INFEASIBLE = 2
_STATUS_UNBOUNDED = 3


class HighsBackend(MIPBackend):
    """Solve with the HiGHS branch-and-cut shipped with scipy.

    scipy exposes no MIP start, so start values are accepted and dropped.
    The reported score is the HiGHS objective snapped to the rounded
    solution; a gap beyond the integrality tolerance is an error.
    """

    name = "highs"

    def __init__(self, *, mip_rel_gap: float = 0.0, disp: bool = False) -> None:
        super().__init__()
        self.mip_rel_gap = mip_rel_gap
        self.disp = disp
        self._matrices: list[sp.csr_matrix] = []
        self._lower: list[np.ndarray] = []
        self._upper: list[np.ndarray] = []
        self._weights: Optional[np.ndarray] = None
        self._solution: Optional[np.ndarray] = None
        self._objective: Optional[float] = None

    def define_variables(self, num_variables: int) -> None:
        self.num_variables = int(num_variables)

    def define_variables_with_start_values(
        self,
        num_variables: int,
        start_values: np.ndarray,
    ) -> None:
        logger.debug("HiGHS via scipy has no MIP start; ignoring %d start values.", len(start_values))
        self.define_variables(num_variables)

    def add_constraint_block(self, block: ConstraintBlock) -> None:
        if block.num_rows == 0:
            return
        self._matrices.append(block.matrix)
        self._lower.append(block.lower)
        self._upper.append(block.upper)

    def set_objective(self, weights: np.ndarray) -> None:
        self._weights = np.asarray(weights, dtype=float)

    def solve_mip(
        self,
        *,
        time_limit: Optional[float] = None,
        threads: Optional[int] = None,
    ) -> SolverState:
        if self._weights is None:
            raise BackendError("HiGHS backend has no objective; load a model first.")
        constraints = []
        if self._matrices:
            constraints.append(
                LinearConstraint(
                    sp.vstack(self._matrices, format="csr"),
                    np.concatenate(self._lower),
                    np.concatenate(self._upper),
                )
            )
        options: dict[str, object] = {"disp": self.disp}
        if time_limit is not None and time_limit > 0:
            options["time_limit"] = float(time_limit)
        options["mip_rel_gap"] = float(self.mip_rel_gap)
        result = milp(
            -self._weights,
            integrality=np.ones(self.num_variables, dtype=np.int8),
            bounds=Bounds(np.zeros(self.num_variables), np.ones(self.num_variables)),
            constraints=constraints,
            options=options,
        )
        logger.debug("HiGHS finished with status %s: %s", result.status, result.message)
        if result.status == _STATUS_OPTIMAL:
            self._solution = np.round(np.asarray(result.x)).astype(bool)
            self._objective = -float(result.fun)
            return SolverState.SHALL_BUILD_SOLUTION
        if result.status in (_STATUS_INFEASIBLE, _STATUS_LIMIT):
            return SolverState.SHALL_RETURN_NULL
        raise BackendError(
            f"HiGHS failed with status {result.status}: {result.message}",
            context={"status": result.status},
        )

    def _require_solution(self) -> np.ndarray:
        if self._solution is None:
            raise BackendError("HiGHS backend has no solution to read.")
        return self._solution

    def get_variable_assignment(self) -> np.ndarray:
        return self._require_solution().copy()

    def get_solver_score(self) -> float:
        return reconcile_objective(
            self._objective,
            self._weights,
            self._require_solution(),
            backend="HiGHS",
        )

    def close(self) -> None:
        self._matrices.clear()
        self._lower.clear()
        self._upper.clear()
        self._solution = None
        self._objective = None


register("backend", HighsBackend.name, HighsBackend)

__all__ = ["HighsBackend"]
