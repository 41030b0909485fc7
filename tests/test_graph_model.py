import math

import pytest

from fragtree.errors import GraphError
from fragtree.graph import FragmentationGraph, GraphBuilder


def test_losses_carry_target_formula_as_color(example_graph) -> None:
    for loss in example_graph.losses:
        assert loss.color == example_graph.fragment(loss.target).formula


def test_colors_group_vertices_sharing_a_formula(example_graph) -> None:
    colors = example_graph.colors()

    assert colors["C6H10O5"] == [2, 6]
    assert "" not in colors
    assert example_graph.root.vertex_id == 0


def test_outgoing_losses_keep_insertion_order(example_graph) -> None:
    targets = [loss.target for loss in example_graph.outgoing_losses(1)]
    assert targets == [2, 3, 6]
    assert example_graph.out_degree(1) == 3
    assert example_graph.in_degree(4) == 2


def test_cycle_is_rejected() -> None:
    builder = GraphBuilder()
    root = builder.add_fragment("")
    a = builder.add_fragment("C2H4")
    b = builder.add_fragment("C2H2")
    builder.add_loss(root, a, 1.0)
    builder.add_loss(a, b, 1.0)
    builder.add_loss(b, a, 1.0)

    with pytest.raises(GraphError) as exc:
        builder.build()

    assert "acyclic" in str(exc.value)


def test_root_with_incoming_loss_is_rejected() -> None:
    builder = GraphBuilder()
    root = builder.add_fragment("")
    other = builder.add_fragment("C2H4")
    builder.add_loss(other, root, 1.0)

    with pytest.raises(GraphError):
        builder.build(root=root)


@pytest.mark.parametrize(
    "source, target, weight",
    [(0, 5, 1.0), (0, 0, 1.0), (0, 1, math.inf), (0, 1, math.nan)],
)
def test_invalid_losses_are_rejected(source, target, weight) -> None:
    builder = GraphBuilder()
    builder.add_fragment("")
    builder.add_fragment("C2H4")

    with pytest.raises(GraphError):
        builder.add_loss(source, target, weight)


def test_dict_roundtrip_preserves_structure(example_graph) -> None:
    restored = FragmentationGraph.from_dict(example_graph.to_dict())

    assert restored.number_of_vertices() == example_graph.number_of_vertices()
    assert [(l.source, l.target, l.weight) for l in restored.losses] == [
        (l.source, l.target, l.weight) for l in example_graph.losses
    ]


def test_from_dict_reports_missing_fields() -> None:
    payload = {"fragments": ["", "C2H4"], "losses": [{"source": 0, "target": 1}]}

    with pytest.raises(GraphError) as exc:
        FragmentationGraph.from_dict(payload)

    assert "weight" in str(exc.value)


def test_to_networkx_keeps_parallel_information(example_graph) -> None:
    nx_graph = example_graph.to_networkx()

    assert nx_graph.number_of_nodes() == example_graph.number_of_vertices()
    assert nx_graph.number_of_edges() == example_graph.number_of_edges()
    assert nx_graph.nodes[2]["formula"] == "C6H10O5"
