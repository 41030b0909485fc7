"""JSON/YAML I/O for graphs, trees, and configs."""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
from typing import Any, Optional, Union

import yaml

from fragtree.errors import GraphError
from fragtree.graph import FragmentationGraph
from fragtree.tree import FragmentationTree

_YAML_SUFFIXES = (".yaml", ".yml")


def read_yaml_payload(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_handle: Optional[int] = None
    tmp_path: Optional[str] = None
    try:
        tmp_handle, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        with os.fdopen(tmp_handle, "w", encoding="utf-8") as handle:
            tmp_handle = None
            json.dump(payload, handle, indent=2, sort_keys=True, ensure_ascii=True)
            handle.write("\n")
        os.replace(tmp_path, path)
    finally:
        if tmp_handle is not None:
            try:
                os.close(tmp_handle)
            except OSError:
                pass
        if tmp_path is not None and os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError:
                pass


def read_graph(path: Union[str, Path]) -> FragmentationGraph:
    path = Path(path)
    if not path.exists():
        raise GraphError(f"Graph file not found: {path}")
    try:
        if path.suffix.lower() in _YAML_SUFFIXES:
            payload = read_yaml_payload(path)
        else:
            payload = read_json(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise GraphError(f"Failed to read graph from {path}: {exc}") from exc
    return FragmentationGraph.from_dict(payload)


def write_tree(path: Union[str, Path], tree: FragmentationTree) -> None:
    write_json_atomic(Path(path), tree.to_dict())


__all__ = [
    "read_json",
    "read_yaml_payload",
    "write_json_atomic",
    "read_graph",
    "write_tree",
]
