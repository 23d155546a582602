"""
graphscript compiler: Apps Script Emitter
=========================================
Turns a prepared WorkflowGraph plus its execution plan into one Code.gs file.

Output structure
----------------
    // Compiled from workflow: <name> (<id>)
    // Generated:  <date>

    <runtime prelude: logging, core, and any section a node function needs>

    // ── Node functions ───────────────────────
    function step_<id>(ctx) { <registry / condition / fallback body> }
    …

    // ── Workflow: <name> ─────────────────────
    function main(ctx) {
      ctx = ctx || {};
      __resetRun([<all ids>], [<root ids>]);

      if (__isActive("<id>")) {            // one block per node, in plan order
        ctx = __runStep(…);
        __storeNodeOutput("<id>", ctx);
        __markDone("<id>");
        __activate("<successor>");           // every successor
      }

      if (__isActive("<cond>")) {          // condition node
        var decision_<cond> = __runStep(…);
        __storeNodeOutput("<cond>", decision_<cond>);
        __markDone("<cond>");
        <activate __selectBranchTargets(branches, matchedBranch)>
      }
      return ctx;
    }

Placeholder tokens are left in the text; the orchestrator runs the
resolution pass once over the assembled file.
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Set

from .branches import resolve_branches
from .ir import WorkflowGraph, WorkflowNode
from .runtime import runtime_prelude
from .scheduler import EdgeIndex
from .templates import (
    CodeWriter,
    NodeFunctionRegistry,
    condition_function_body,
    condition_rule,
    js_literal,
)

logger = logging.getLogger(__name__)


@dataclass
class ExecutionPlan:
    """Everything the emitter needs besides the graph itself."""
    order: List[str]
    roots: List[str]
    edge_index: EdgeIndex = field(default_factory=dict)


# ── Naming ────────────────────────────────────────────────────────────────────

_UNSAFE = re.compile(r"[^A-Za-z0-9_]")


def function_names(node_ids: List[str]) -> Dict[str, str]:
    """Map node ids to unique JavaScript function names ``step_<safe id>``."""
    names: Dict[str, str] = {}
    taken: Set[str] = set()
    for node_id in node_ids:
        base = "step_" + _UNSAFE.sub("_", node_id)
        name = base
        suffix = 2
        while name in taken:
            name = f"{base}_{suffix}"
            suffix += 1
        taken.add(name)
        names[node_id] = name
    return names


def _one_line(text: str) -> str:
    return " ".join(str(text).split())


# ── File header ───────────────────────────────────────────────────────────────

def _header(graph: WorkflowGraph) -> List[str]:
    today = datetime.date.today().isoformat()
    title = _one_line(graph.name or graph.id)
    return [
        f"// Compiled from workflow: {title} ({_one_line(graph.id)})",
        f"// Generated:  {today}",
        "//",
        "// This file was produced by graphscript.compiler.",
        "// Do not edit by hand; recompile the workflow graph to regenerate.",
        "",
    ]


def _section_rule(title: str) -> str:
    return f"// ── {title} {'─' * max(0, 50 - len(title))}"


# ── Node functions ────────────────────────────────────────────────────────────

def _runtime_needs(graph: WorkflowGraph, registry: NodeFunctionRegistry) -> Set[str]:
    needs: Set[str] = set()
    for node in graph.nodes:
        if not node.is_condition:
            needs.update(registry.get(node.operation_key).runtime)
    return needs


def _function_body(node: WorkflowNode, registry: NodeFunctionRegistry) -> str:
    if node.is_condition:
        return condition_function_body(node.id, condition_rule(node))
    return registry.generate(node.operation_key, node.config)


def _node_functions(
    graph: WorkflowGraph,
    plan: ExecutionPlan,
    names: Dict[str, str],
    registry: NodeFunctionRegistry,
) -> List[str]:
    w = CodeWriter()
    w.writeln(_section_rule("Node functions"))
    for node_id in plan.order:
        node = graph.get_node(node_id)
        label = "condition" if node.is_condition else node.operation_key
        w.comment(f"{_one_line(node.display_name)} [{label}]")
        w.writeln(f"function {names[node_id]}(ctx) {{")
        w.push()
        w.block(_function_body(node, registry))
        w.pop()
        w.writeln("}")
        w.blank()
    return w.lines()


# ── Activation blocks ─────────────────────────────────────────────────────────

def _emit_action_block(node: WorkflowNode, plan: ExecutionPlan, fn_name: str, w: CodeWriter) -> None:
    node_id = js_literal(node.id)
    w.writeln(f"ctx = __runStep({node_id}, {js_literal(node.display_name)}, {fn_name}, ctx);")
    w.writeln(f"__storeNodeOutput({node_id}, ctx);")
    w.writeln(f"__markDone({node_id});")
    for edge in plan.edge_index.get(node.id, []):
        w.writeln(f"__activate({js_literal(edge.target)});")


def _emit_condition_block(node: WorkflowNode, plan: ExecutionPlan, fn_name: str, w: CodeWriter) -> None:
    node_id = js_literal(node.id)
    suffix = fn_name[len("step_"):]
    decision = f"decision_{suffix}"
    targets = f"targets_{suffix}"
    branches = [b.to_dict() for b in resolve_branches(node, plan.edge_index)]

    w.writeln(f"var {decision} = __runStep({node_id}, {js_literal(node.display_name)}, {fn_name}, ctx);")
    w.writeln(f"__storeNodeOutput({node_id}, {decision});")
    w.writeln(f"__markDone({node_id});")
    w.writeln(f"var {targets} = __selectBranchTargets({js_literal(branches)}, {decision}.matchedBranch);")
    w.writeln(f"for (var i_{suffix} = 0; i_{suffix} < {targets}.length; i_{suffix}++) {{")
    w.push()
    w.writeln(f"__activate({targets}[i_{suffix}]);")
    w.pop()
    w.writeln("}")


def _main_function(graph: WorkflowGraph, plan: ExecutionPlan, names: Dict[str, str]) -> List[str]:
    w = CodeWriter()
    w.writeln(_section_rule(f"Workflow: {_one_line(graph.name or graph.id)}"))
    w.writeln("function main(ctx) {")
    w.push()
    w.writeln("ctx = ctx || {};")
    w.writeln(f"__resetRun({js_literal(plan.order)}, {js_literal(plan.roots)});")
    w.blank()

    for node_id in plan.order:
        node = graph.get_node(node_id)
        w.comment(f"{'Condition' if node.is_condition else 'Node'}: {_one_line(node.display_name)}")
        w.writeln(f"if (__isActive({js_literal(node_id)})) {{")
        w.push()
        if node.is_condition:
            _emit_condition_block(node, plan, names[node_id], w)
        else:
            _emit_action_block(node, plan, names[node_id], w)
        w.pop()
        w.writeln("}")
        w.blank()

    w.writeln("return ctx;")
    w.pop()
    w.writeln("}")
    return w.lines()


# ── Public API ────────────────────────────────────────────────────────────────

def emit(graph: WorkflowGraph, plan: ExecutionPlan, registry: NodeFunctionRegistry) -> str:
    """
    Emit a complete Code.gs source file.

    Args:
        graph:    The prepared graph (ref wrappers already encoded as tokens).
        plan:     Topological order, roots and the dangling-free edge index.
        registry: Source of node function bodies.

    Returns:
        Script source with placeholder tokens still unresolved.
    """
    names = function_names(plan.order)
    logger.debug(f"Emitting {len(plan.order)} node block(s) for workflow '{graph.id}'")

    sections: List[List[str]] = [
        _header(graph),
        runtime_prelude(_runtime_needs(graph, registry)),
        _node_functions(graph, plan, names, registry),
        _main_function(graph, plan, names),
    ]

    lines: List[str] = []
    for section in sections:
        lines.extend(section)
    return "\n".join(lines) + "\n"


__all__ = ["ExecutionPlan", "emit", "function_names"]
