"""
graphscript compiler: Graph JSON Schema + Validator
====================================================
Canonical serialisation format of a workflow graph, with a lightweight
validator that runs without any third-party JSON Schema library.

Canonical JSON format
---------------------

    {
      "id":    "wf_welcome",                    // workflow id (str, optional)
      "name":  "Welcome email",                 // human label (str, optional)
      "nodes": [
        {
          "id":     "n1",                       // unique within this graph (str, required)
          "type":   "trigger",                  // trigger | action | transform | condition.* (str, required)
          "app":    "core",                     // connector app (str, optional)
          "op":     "core.manual",              // operation, or a full "kind.app:op" key (str, optional)
          "name":   "Start",                    // display name (str, optional)
          "params": { "url": {"mode": "static", "value": "https://…"} },   // (object, optional)
          "data":   { "config": {}, "rule": "ctx.total > 10" }             // (object, optional)
        }
      ],
      "edges": [
        {
          "id":     "e1",                       // (str, optional → "<source>-><target>")
          "source": "n1",                       // alias: "from"
          "target": "n2",                       // alias: "to"
          "label":  "Yes",                      // branch label on condition edges (optional)
          "branchValue": true,                  // explicit branch key (optional)
          "isDefault":   false                  // default branch marker (optional)
        }
      ]
    }

Edges pointing at unknown nodes are *not* schema errors; the compiler drops
them and reports a "dangling-edge" diagnostic.
"""

from __future__ import annotations

import json
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import SchemaError
from .ir import WorkflowNode
from .templates import DEFAULT_REGISTRY, NodeFunctionRegistry


# ── Known kinds ───────────────────────────────────────────────────────────────

KNOWN_NODE_KINDS: frozenset = frozenset({
    "trigger",
    "action",
    "transform",
    "condition",
})


# ── Validation helpers ────────────────────────────────────────────────────────

def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SchemaError(message)


def _require_keys(obj: Dict, keys: List[str], context: str) -> None:
    for key in keys:
        _require(key in obj, f"{context}: missing required field '{key}'")


def _optional_str(obj: Dict, key: str, context: str) -> None:
    if obj.get(key) is not None:
        _require(isinstance(obj[key], str), f"{context}.{key} must be a string")


def _report(message: str, strict: bool) -> None:
    if strict:
        raise SchemaError(message)
    warnings.warn(message + " (compilation will emit a fallback function)", stacklevel=3)


# ── Public validator ─────────────────────────────────────────────────────────

def validate(
    data: Dict[str, Any],
    *,
    strict: bool = False,
    registry: Optional[NodeFunctionRegistry] = None,
) -> None:
    """
    Validate a parsed graph JSON dict.

    Args:
        data:     A pre-parsed dict (result of json.load / json.loads).
        strict:   When True, raise SchemaError for unknown node kinds and
                  unregistered operations.  When False (default), those
                  produce a warning.
        registry: Registry consulted for operation keys; DEFAULT_REGISTRY
                  when omitted.

    Raises:
        SchemaError: On any structural violation.
    """
    registry = registry if registry is not None else DEFAULT_REGISTRY

    _require(isinstance(data, dict), "graph JSON must be a JSON object at the top level")
    _require_keys(data, ["nodes", "edges"], "graph root")

    _require(isinstance(data["nodes"], list), "nodes must be a list")
    _require(isinstance(data["edges"], list), "edges must be a list")
    _optional_str(data, "id", "graph")
    _optional_str(data, "name", "graph")

    # ── Validate nodes ──────────────────────────────────────────────────────

    node_ids: set = set()

    for i, node in enumerate(data["nodes"]):
        ctx = f"nodes[{i}]"
        _require(isinstance(node, dict), f"{ctx}: each node must be a JSON object")
        _require_keys(node, ["id", "type"], ctx)
        _require(isinstance(node["id"],   str) and node["id"], f"{ctx}.id must be a non-empty string")
        _require(isinstance(node["type"], str), f"{ctx}.type must be a string")
        _require(
            node["id"] not in node_ids,
            f"{ctx}: duplicate node id '{node['id']}'",
        )
        node_ids.add(node["id"])

        for key in ("app", "op", "name"):
            _optional_str(node, key, ctx)
        for key in ("params", "data"):
            if node.get(key) is not None:
                _require(isinstance(node[key], dict), f"{ctx}.{key} must be an object")

        parsed = WorkflowNode.from_dict(node)
        if parsed.kind not in KNOWN_NODE_KINDS:
            _report(f"{ctx}: unknown node type '{node['type']}'", strict)
        elif not parsed.is_condition and parsed.operation_key not in registry:
            _report(f"{ctx}: unknown operation '{parsed.operation_key}'", strict)

    # ── Validate edges ──────────────────────────────────────────────────────

    for i, edge in enumerate(data["edges"]):
        ctx = f"edges[{i}]"
        _require(isinstance(edge, dict), f"{ctx}: each edge must be a JSON object")
        for key in ("id", "source", "from", "target", "to", "label"):
            _optional_str(edge, key, ctx)
        if edge.get("data") is not None:
            _require(isinstance(edge["data"], dict), f"{ctx}.data must be an object")


def validate_file(
    path: Union[str, Path],
    *,
    strict: bool = False,
    registry: Optional[NodeFunctionRegistry] = None,
) -> Dict[str, Any]:
    """
    Load and validate a graph JSON file.

    Returns:
        The parsed dict on success.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        SchemaError: If the graph structure is invalid.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    validate(data, strict=strict, registry=registry)
    return data


__all__ = ["KNOWN_NODE_KINDS", "SchemaError", "validate", "validate_file"]
