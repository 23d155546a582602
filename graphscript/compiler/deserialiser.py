"""
graphscript compiler: JSON Deserialiser
========================================
Converts a serialised workflow JSON file (or dict) into a WorkflowGraph.

Pipeline
--------
    graph.json     →  [deserialiser.json_to_graph]  →  WorkflowGraph
    WorkflowGraph  →  [compile_workflow]            →  CompileResult

See schema.py for the JSON format.  Loading does not validate; call
schema.validate() first when the input is untrusted.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

from .ir import WorkflowGraph


def load_json(source: Union[str, Path, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(source, (str, Path)):
        path = Path(source)
        with path.open(encoding="utf-8") as fh:
            return json.load(fh)
    return source


def json_to_graph(source: Union[str, Path, Dict[str, Any]]) -> WorkflowGraph:
    """
    Parse a workflow JSON description and return a WorkflowGraph.

    Args:
        source: One of:
            - A file path (str or Path) to a JSON file.
            - A pre-parsed dict matching the graph JSON schema.

    Raises:
        FileNotFoundError: If a path is given and the file does not exist.
        KeyError: If a node has no ``id``.
    """
    return WorkflowGraph.from_dict(load_json(source))


def graph_to_json(graph: WorkflowGraph) -> Dict[str, Any]:
    return graph.to_dict()


__all__ = ["graph_to_json", "json_to_graph", "load_json"]
