"""
graphscript compiler: Graph preparation
========================================
Rewrites value wrappers inside node configuration so the graph can be
stringified straight into source text:

    {"mode": "static", "value": X}             →  X  (prepared recursively)
    {"mode": "ref", "nodeId": N, "path": P}    →  encode_ref(N, P)

Lists are mapped element-wise and plain dicts rebuilt key by key; every other
value passes through.  The input graph is never mutated.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict

from .ir import WorkflowGraph, WorkflowNode
from .refs import encode_ref

logger = logging.getLogger(__name__)


# Keys of node.data that hold user configuration.
_DATA_CONFIG_KEYS = ("config", "parameters")


def prepare_value(value: Any) -> Any:
    if isinstance(value, list):
        return [prepare_value(v) for v in value]

    if isinstance(value, dict):
        mode = value.get("mode")
        if mode == "static" and "value" in value:
            return prepare_value(value["value"])
        if mode == "ref":
            node_id = value.get("nodeId")
            if isinstance(node_id, str) and node_id:
                path = value.get("path")
                return encode_ref(node_id, path if isinstance(path, str) else "")
        return {k: prepare_value(v) for k, v in value.items()}

    return value


def prepare_node(node: WorkflowNode) -> WorkflowNode:
    data: Dict[str, Any] = dict(node.data)
    for key in _DATA_CONFIG_KEYS:
        if key in data:
            data[key] = prepare_value(data[key])
    return replace(node, params=prepare_value(node.params or {}), data=data)


def prepare_graph(graph: WorkflowGraph) -> WorkflowGraph:
    """Return a copy of ``graph`` with every node's config prepared."""
    logger.debug(f"Preparing {len(graph.nodes)} node(s) of workflow '{graph.id}'")
    return replace(graph, nodes=[prepare_node(n) for n in graph.nodes])


__all__ = ["prepare_graph", "prepare_node", "prepare_value"]
