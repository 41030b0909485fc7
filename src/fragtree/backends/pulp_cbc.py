"""CBC backend through PuLP."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pulp

from fragtree.backends.base import MIPBackend, SolverState, reconcile_objective
from fragtree.errors import BackendError
from fragtree.model import ConstraintBlock
from fragtree.registry import register

logger = logging.getLogger(__name__)


class PulpBackend(MIPBackend):
    """Solve with COIN-OR CBC, supporting MIP starts."""

    name = "pulp"

    def __init__(self, *, msg: bool = False, solver_path: Optional[str] = None) -> None:
        super().__init__()
        self.msg = msg
        self.solver_path = solver_path
        self._problem: Optional[pulp.LpProblem] = None
        self._variables: list[pulp.LpVariable] = []
        self._warm_start = False
        self._weights: Optional[np.ndarray] = None
        self._solved = False

    def define_variables(self, num_variables: int) -> None:
        self.num_variables = int(num_variables)
        self._problem = pulp.LpProblem("colorful_subtree", pulp.LpMaximize)
        self._variables = [
            pulp.LpVariable(f"loss_{index}", cat=pulp.LpBinary)
            for index in range(self.num_variables)
        ]

    def define_variables_with_start_values(
        self,
        num_variables: int,
        start_values: np.ndarray,
    ) -> None:
        self.define_variables(num_variables)
        for variable, value in zip(self._variables, start_values):
            variable.setInitialValue(int(round(float(value))))
        self._warm_start = True

    def _require_problem(self) -> pulp.LpProblem:
        if self._problem is None:
            raise BackendError("PuLP backend has no variables; load a model first.")
        return self._problem

    def add_constraint_block(self, block: ConstraintBlock) -> None:
        problem = self._require_problem()
        matrix = block.matrix
        for row in range(block.num_rows):
            start, end = matrix.indptr[row], matrix.indptr[row + 1]
            expression = pulp.lpSum(
                float(coefficient) * self._variables[int(column)]
                for column, coefficient in zip(matrix.indices[start:end], matrix.data[start:end])
            )
            lower = float(block.lower[row])
            upper = float(block.upper[row])
            if np.isfinite(lower):
                problem += expression >= lower, f"{block.name}_{row}_lo"
            if np.isfinite(upper):
                problem += expression <= upper, f"{block.name}_{row}_up"

    def set_objective(self, weights: np.ndarray) -> None:
        problem = self._require_problem()
        self._weights = np.asarray(weights, dtype=float)
        problem += pulp.lpSum(
            float(weight) * variable for weight, variable in zip(weights, self._variables)
        )

    def solve_mip(
        self,
        *,
        time_limit: Optional[float] = None,
        threads: Optional[int] = None,
    ) -> SolverState:
        problem = self._require_problem()
        solver = pulp.PULP_CBC_CMD(
            msg=self.msg,
            timeLimit=time_limit if time_limit and time_limit > 0 else None,
            threads=threads if threads and threads > 1 else None,
            warmStart=self._warm_start,
            path=self.solver_path,
        )
        try:
            problem.solve(solver)
        except pulp.PulpSolverError as exc:
            raise BackendError(f"CBC failed: {exc}") from exc
        status = pulp.LpStatus.get(problem.status, str(problem.status))
        logger.debug("CBC finished with status %s (solution status %s).", status, problem.sol_status)
        if problem.status == pulp.LpStatusUnbounded:
            raise BackendError("CBC reported an unbounded binary program.")
        if problem.status != pulp.LpStatusOptimal or problem.sol_status != pulp.LpSolutionOptimal:
            return SolverState.SHALL_RETURN_NULL
        self._solved = True
        return SolverState.SHALL_BUILD_SOLUTION

    def get_variable_assignment(self) -> np.ndarray:
        if not self._solved:
            raise BackendError("PuLP backend has no solution to read.")
        return np.array(
            [(variable.varValue or 0.0) > 0.5 for variable in self._variables],
            dtype=bool,
        )

    def get_solver_score(self) -> float:
        if not self._solved:
            raise BackendError("PuLP backend has no solution to read.")
        value = pulp.value(self._require_problem().objective)
        return reconcile_objective(
            0.0 if value is None else float(value),
            self._weights,
            self.get_variable_assignment(),
            backend="CBC",
        )

    def close(self) -> None:
        self._problem = None
        self._variables = []
        self._weights = None
        self._solved = False


register("backend", PulpBackend.name, PulpBackend)

__all__ = ["PulpBackend"]
