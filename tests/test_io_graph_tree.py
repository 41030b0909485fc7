import json

import pytest
import yaml

from fragtree.errors import GraphError
from fragtree.io_utils import read_graph, write_tree
from fragtree.solver import ColorfulSubtreeSolver


def test_read_graph_accepts_yaml(tmp_path, example_graph) -> None:
    path = tmp_path / "graph.yaml"
    path.write_text(yaml.safe_dump(example_graph.to_dict()), encoding="utf-8")

    graph = read_graph(path)

    assert graph.number_of_vertices() == example_graph.number_of_vertices()
    assert [loss.weight for loss in graph.losses] == [
        loss.weight for loss in example_graph.losses
    ]


def test_read_graph_reports_malformed_json(tmp_path) -> None:
    path = tmp_path / "graph.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(GraphError) as exc:
        read_graph(path)

    assert "Failed to read graph" in str(exc.value)


def test_write_tree_stores_nested_fragments(tmp_path, example_graph) -> None:
    tree = ColorfulSubtreeSolver(example_graph).solve().tree
    path = tmp_path / "out" / "tree.json"

    write_tree(path, tree)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["score"] == pytest.approx(9.0)
    assert payload["root"]["formula"] == "C6H12O6"
    assert payload["root"]["vertex_id"] == 1
    assert len(payload["root"]["children"]) == 2
    assert max(node.depth() for node in tree.fragments()) == 2
    assert not list(tmp_path.joinpath("out").glob(".tree.json.*"))
