from types import SimpleNamespace
from typing import Optional

import numpy as np
import pytest

import fragtree.backends.highs as highs_backend
from fragtree.backends.base import MIPBackend, SolverState, reconcile_objective
from fragtree.errors import BackendError, ConsistencyError, SolverError
from fragtree.solver import ColorfulSubtreeSolver, Infeasible, Optimal, Rejected

OPTIMAL = [True, True, True, False, True, True, False, False]


class ScriptedBackend(MIPBackend):
    """Backend replaying a fixed answer."""

    name = "scripted"
    instances: list["ScriptedBackend"] = []

    def __init__(
        self,
        *,
        state: SolverState = SolverState.SHALL_BUILD_SOLUTION,
        past_state: SolverState = SolverState.FINISHED,
        assignment=OPTIMAL,
        score: float = 9.0,
        fail_on_solve: Optional[Exception] = None,
    ) -> None:
        super().__init__()
        self.state = state
        self.past_state = past_state
        self.assignment = np.asarray(assignment, dtype=bool)
        self.score = score
        self.fail_on_solve = fail_on_solve
        self.calls: list[str] = []
        self.closed = False
        ScriptedBackend.instances.append(self)

    def define_variables(self, num_variables):
        self.calls.append("define_variables")
        self.num_variables = num_variables

    def define_variables_with_start_values(self, num_variables, start_values):
        self.calls.append("define_variables_with_start_values")
        self.start_values = start_values
        self.num_variables = num_variables

    def add_constraint_block(self, block):
        self.calls.append(f"block:{block.name}")

    def set_objective(self, weights):
        self.calls.append("set_objective")

    def solve_mip(self, *, time_limit=None, threads=None):
        self.calls.append("solve_mip")
        self.time_limit = time_limit
        if self.fail_on_solve is not None:
            raise self.fail_on_solve
        return self.state

    def get_variable_assignment(self):
        return self.assignment

    def get_solver_score(self):
        return self.score

    def past_build_solution(self):
        self.calls.append("past_build_solution")
        return self.past_state

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def _reset_instances():
    ScriptedBackend.instances.clear()
    yield
    ScriptedBackend.instances.clear()


def _solve(graph, **options):
    solver = ColorfulSubtreeSolver(graph, backend=ScriptedBackend, backend_options=options)
    return solver.solve(), ScriptedBackend.instances[-1]


def test_lifecycle_order(example_graph) -> None:
    result, backend = _solve(example_graph)

    assert isinstance(result, Optimal)
    assert backend.calls == [
        "define_variables",
        "block:tree",
        "block:color",
        "block:minimal_tree_size",
        "set_objective",
        "solve_mip",
        "past_build_solution",
    ]
    assert backend.closed


def test_warm_start_uses_start_values(example_graph) -> None:
    solver = ColorfulSubtreeSolver(
        example_graph,
        backend=ScriptedBackend,
        feasible_solver="greedy",
    )
    solver.solve()
    backend = ScriptedBackend.instances[-1]

    assert backend.calls[0] == "define_variables_with_start_values"
    assert backend.start_values.sum() > 0


def test_shall_return_null_from_solve_means_no_solution(example_graph) -> None:
    result, backend = _solve(example_graph, state=SolverState.SHALL_RETURN_NULL)

    assert isinstance(result, Infeasible)
    assert "past_build_solution" not in backend.calls
    assert backend.closed


def test_post_hoc_rejection_discards_the_tree(example_graph) -> None:
    result, backend = _solve(example_graph, past_state=SolverState.SHALL_RETURN_NULL)

    assert isinstance(result, Rejected)
    assert result.tree is None
    assert backend.closed


def test_score_disagreement_is_fatal(example_graph) -> None:
    with pytest.raises(ConsistencyError) as exc:
        _solve(example_graph, score=8.0)

    assert "buggy" in str(exc.value)
    assert ScriptedBackend.instances[-1].closed


def test_missing_root_loss_is_fatal(example_graph) -> None:
    with pytest.raises(ConsistencyError):
        _solve(example_graph, assignment=[False] * 8, score=0.0)


def test_backend_exceptions_are_wrapped(example_graph) -> None:
    with pytest.raises(SolverError) as exc:
        _solve(example_graph, fail_on_solve=RuntimeError("engine crashed"))

    assert not isinstance(exc.value, ConsistencyError)
    assert "engine crashed" in str(exc.value)
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert ScriptedBackend.instances[-1].closed


def test_backend_errors_keep_their_message(example_graph) -> None:
    with pytest.raises(SolverError) as exc:
        _solve(example_graph, fail_on_solve=BackendError("license expired"))

    assert str(exc.value) == "license expired"
    assert isinstance(exc.value.__cause__, BackendError)


def test_time_limit_is_forwarded(example_graph) -> None:
    solver = ColorfulSubtreeSolver(example_graph, backend=ScriptedBackend, time_limit=12)
    solver.solve()

    assert ScriptedBackend.instances[-1].time_limit == pytest.approx(12.0)


def test_unknown_backend_name_is_reported(example_graph) -> None:
    with pytest.raises(BackendError) as exc:
        ColorfulSubtreeSolver(example_graph, backend="does-not-exist")

    assert "highs" in str(exc.value)


def _scripted_milp(objective):
    def _milp(c, **_kwargs):
        return SimpleNamespace(
            status=0,
            x=np.asarray(OPTIMAL, dtype=float),
            fun=-objective,
            message="scripted",
        )

    return _milp


def test_engine_objective_disagreeing_with_its_selection_is_fatal(example_graph, monkeypatch) -> None:
    monkeypatch.setattr(highs_backend, "milp", _scripted_milp(20.0))

    with pytest.raises(ConsistencyError) as exc:
        ColorfulSubtreeSolver(example_graph, backend="highs").solve()

    assert "disagrees with its selected losses" in str(exc.value)
    assert exc.value.context["objective"] == pytest.approx(20.0)


def test_engine_objective_within_tolerance_is_snapped(example_graph, monkeypatch) -> None:
    monkeypatch.setattr(highs_backend, "milp", _scripted_milp(9.0 + 1e-7))

    result = ColorfulSubtreeSolver(example_graph, backend="highs").solve()

    assert isinstance(result, Optimal)
    assert result.score == 9.0


def test_reconcile_objective_on_empty_selection() -> None:
    weights = np.array([1.0, -2.0])
    nothing = np.zeros(2, dtype=bool)

    assert reconcile_objective(0.0, weights, nothing, backend="test") == 0.0
    with pytest.raises(ConsistencyError):
        reconcile_objective(float("nan"), weights, nothing, backend="test")
