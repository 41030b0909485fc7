from __future__ import annotations

import itertools
import random
import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    src_root = Path(__file__).resolve().parents[1] / "src"
    src_path = str(src_root)
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


def _build_example_graph():
    from fragtree.graph import GraphBuilder

    builder = GraphBuilder()
    root = builder.add_fragment("")
    precursor = builder.add_fragment("C6H12O6")
    water_loss = builder.add_fragment("C6H10O5")
    formaldehyde_loss = builder.add_fragment("C5H10O5")
    second_water_loss = builder.add_fragment("C6H8O4")
    c5_water_loss = builder.add_fragment("C5H8O4")
    water_loss_twin = builder.add_fragment("C6H10O5")

    builder.add_loss(root, precursor, 1.0)
    builder.add_loss(precursor, water_loss, 2.0)
    builder.add_loss(precursor, formaldehyde_loss, -1.0)
    builder.add_loss(precursor, water_loss_twin, 1.5)
    builder.add_loss(water_loss, second_water_loss, 3.0)
    builder.add_loss(formaldehyde_loss, c5_water_loss, 4.0)
    builder.add_loss(water_loss_twin, second_water_loss, 3.2)
    builder.add_loss(water_loss, c5_water_loss, 0.5)
    return builder.build()


def _random_graph(seed: int, n_fragments: int = 7, max_losses: int = 12):
    from fragtree.graph import GraphBuilder

    rng = random.Random(seed)
    builder = GraphBuilder()
    root = builder.add_fragment("")
    pool = ["C4H4", "C3H6", "C2H2", "C3H4", "CH2"]
    precursors = [builder.add_fragment(f"C{5 + k}H{8 + k}") for k in range(2)]
    others = [builder.add_fragment(rng.choice(pool)) for _ in range(n_fragments - 2)]
    vertices = precursors + others
    for vertex in precursors:
        builder.add_loss(root, vertex, rng.randint(-4, 8) * 0.25)
    n_losses = len(precursors)
    for i, source in enumerate(vertices):
        for target in vertices[i + 1 :]:
            if target in precursors or n_losses >= max_losses:
                continue
            if rng.random() < 0.45:
                builder.add_loss(source, target, rng.randint(-8, 16) * 0.25)
                n_losses += 1
    return builder.build()


def _brute_force_optimum(graph, lower_bound: float = float("-inf")):
    from fragtree.verify import assignment_violations

    best = None
    for bits in itertools.product((False, True), repeat=graph.number_of_edges()):
        if not any(bits):
            continue
        score = sum(loss.weight for loss, used in zip(graph.losses, bits) if used)
        if best is not None and score <= best:
            continue
        if score < lower_bound:
            continue
        if assignment_violations(graph, bits):
            continue
        best = score
    return best


@pytest.fixture
def example_graph():
    return _build_example_graph()


@pytest.fixture
def random_graph():
    return _random_graph


@pytest.fixture
def brute_force_optimum():
    return _brute_force_optimum
