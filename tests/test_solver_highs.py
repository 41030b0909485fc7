import math

import pytest

from fragtree.backends.highs import HighsBackend
from fragtree.config.schema import SolverConfig
from fragtree.edge_index import build_edge_index
from fragtree.graph import GraphBuilder
from fragtree.model import MIPModelBuilder
from fragtree.solver import (
    ColorfulSubtreeSolver,
    Infeasible,
    Optimal,
    solve_colorful_subtree,
)
from fragtree.verify import assignment_violations


def test_example_graph_optimum(example_graph) -> None:
    result = ColorfulSubtreeSolver(example_graph, backend="highs").solve()

    assert isinstance(result, Optimal)
    assert result.score == pytest.approx(9.0)
    assert result.tree.root.formula == "C6H12O6"
    assert sorted(result.tree.formulas()) == sorted(
        ["C6H12O6", "C6H10O5", "C5H10O5", "C6H8O4", "C5H8O4"]
    )


@pytest.mark.parametrize("seed", range(8))
def test_matches_brute_force_on_random_graphs(random_graph, brute_force_optimum, seed) -> None:
    graph = random_graph(seed)
    expected = brute_force_optimum(graph)

    result = ColorfulSubtreeSolver(graph, strict=True).solve()

    assert isinstance(result, Optimal)
    assert result.score == pytest.approx(expected, abs=1e-9)
    assert result.tree.score() == pytest.approx(expected, abs=1e-9)


@pytest.mark.parametrize("seed", range(4))
def test_returned_trees_are_colorful(random_graph, seed) -> None:
    result = ColorfulSubtreeSolver(random_graph(seed)).solve()

    formulas = [formula for formula in result.tree.formulas() if formula]
    assert len(formulas) == len(set(formulas))


def test_raw_assignment_is_a_colorful_tree(example_graph) -> None:
    index = build_edge_index(example_graph)
    model = (
        MIPModelBuilder(example_graph, index)
        .define_variables()
        .set_constraints()
        .set_objective()
        .build()
    )
    with HighsBackend() as backend:
        backend.load(model)
        backend.solve_mip()
        assignment = backend.get_variable_assignment()

    assert assignment_violations(example_graph, assignment) == []


@pytest.mark.parametrize("weight", [2.5, 0.0, -3.75])
def test_single_loss_graph_skips_the_mip(weight) -> None:
    builder = GraphBuilder()
    root = builder.add_fragment("")
    only = builder.add_fragment("C7H8")
    builder.add_loss(root, only, weight)
    graph = builder.build()

    def _no_backend(**_kwargs):
        raise AssertionError("backend must not be created")

    result = ColorfulSubtreeSolver(graph, backend=_no_backend, lower_bound=100.0).solve()

    assert isinstance(result, Optimal)
    assert result.tree.number_of_vertices() == 1
    assert result.tree.root.formula == "C7H8"
    assert result.tree.root.weight == weight
    assert result.score == weight


def test_graph_without_root_losses_has_no_solution() -> None:
    builder = GraphBuilder()
    builder.add_fragment("")
    builder.add_fragment("C2H4")
    result = ColorfulSubtreeSolver(builder.build()).solve()

    assert isinstance(result, Infeasible)
    assert result.tree is None


def test_lower_bound_above_optimum_prunes(example_graph) -> None:
    result = ColorfulSubtreeSolver(example_graph, lower_bound=9.5).solve()

    assert isinstance(result, Infeasible)
    assert not result.is_optimal


def test_lower_bound_at_optimum_keeps_solution(example_graph) -> None:
    result = ColorfulSubtreeSolver(example_graph, lower_bound=9.0).solve()

    assert isinstance(result, Optimal)
    assert result.score == pytest.approx(9.0)


@pytest.mark.parametrize("seed", range(4))
def test_lower_bound_pruning_on_random_graphs(random_graph, brute_force_optimum, seed) -> None:
    graph = random_graph(seed)
    optimum = brute_force_optimum(graph)

    above = ColorfulSubtreeSolver(graph, lower_bound=optimum + 0.5).solve()
    below = ColorfulSubtreeSolver(graph, lower_bound=optimum - 0.5).solve()

    assert isinstance(above, Infeasible)
    assert below.score == pytest.approx(optimum)


@pytest.mark.parametrize("seed", range(4))
def test_warm_start_does_not_change_the_optimum(random_graph, seed) -> None:
    graph = random_graph(seed)

    cold = ColorfulSubtreeSolver(graph).solve()
    warm = ColorfulSubtreeSolver(graph, feasible_solver="greedy").solve()

    assert warm.score == pytest.approx(cold.score)


def test_solve_from_config(example_graph) -> None:
    config = SolverConfig(backend="highs", warm_start="greedy", time_limit=30)

    result = solve_colorful_subtree(example_graph, config)

    assert result.score == pytest.approx(9.0)


def test_solve_overrides_apply_to_default_config(example_graph) -> None:
    result = solve_colorful_subtree(example_graph, lower_bound=20.0)

    assert isinstance(result, Infeasible)


def test_time_budget_prefers_the_tighter_limit(example_graph) -> None:
    solver = ColorfulSubtreeSolver(example_graph, time_limit=60, seconds_per_decomposition=5)
    solver.reset_time_limit()

    remaining = solver.remaining_time()

    assert remaining is not None and remaining <= 5.0
    assert ColorfulSubtreeSolver(example_graph).remaining_time() is None


def test_solver_defaults_have_no_lower_bound(example_graph) -> None:
    assert ColorfulSubtreeSolver(example_graph).lower_bound == -math.inf


def test_parallel_losses_keep_the_heavier_one() -> None:
    builder = GraphBuilder()
    root = builder.add_fragment("")
    parent = builder.add_fragment("C5H10")
    child = builder.add_fragment("C4H8")
    builder.add_loss(root, parent, 1.0)
    builder.add_loss(parent, child, 1.0)
    builder.add_loss(parent, child, 5.0)

    result = ColorfulSubtreeSolver(builder.build(), feasible_solver="greedy").solve()

    assert isinstance(result, Optimal)
    assert result.score == pytest.approx(6.0)
    assert result.tree.root.children[0].loss_index == 2


def test_losses_below_an_empty_formula_fragment_are_scored() -> None:
    builder = GraphBuilder()
    root = builder.add_fragment("")
    parent = builder.add_fragment("C6H6")
    unnamed = builder.add_fragment("")
    grandchild = builder.add_fragment("C2H2")
    builder.add_loss(root, parent, 1.0)
    builder.add_loss(parent, unnamed, 1.0)
    builder.add_loss(unnamed, grandchild, 2.0)

    result = ColorfulSubtreeSolver(builder.build()).solve()

    assert isinstance(result, Optimal)
    assert result.score == pytest.approx(4.0)
    assert sorted(result.tree.formulas()) == ["", "C2H2", "C6H6"]
