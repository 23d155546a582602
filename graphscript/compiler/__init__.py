"""
graphscript compiler
====================
Compiles a workflow graph into a single, self-contained Apps Script file.

Pipeline:
    dict / WorkflowGraph  →  [prepare]    →  WorkflowGraph (ref tokens)
    WorkflowGraph         →  [scheduler]  →  order / roots / edge index
    graph + plan          →  [emitter]    →  Code.gs text (tokens unresolved)
    Code.gs text          →  [refs]       →  final Code.gs

Public API
----------
    from graphscript.compiler import compile_workflow

    result = compile_workflow(graph_dict)
    print(result.script)
    for diagnostic in result.diagnostics:
        print(diagnostic.code, diagnostic.message)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple, Union

from .emitter import ExecutionPlan, emit
from .errors import (
    DUPLICATE_NODE,
    UNKNOWN_OPERATION,
    CompilationError,
    Diagnostic,
    SchemaError,
)
from .ir import CompiledFile, CompileResult, CompileStats, WorkflowGraph, WorkflowNode
from .prepare import prepare_graph
from .refs import resolve_placeholders
from .scheduler import (
    build_edge_index,
    cycle_diagnostic,
    dangling_edge_diagnostics,
    find_roots,
    topological_order,
)
from .templates import DEFAULT_REGISTRY, NodeFunctionRegistry

logger = logging.getLogger(__name__)


SCRIPT_FILENAME = "Code.gs"

GraphInput = Union[WorkflowGraph, Dict[str, Any]]


def _as_graph(graph: GraphInput) -> WorkflowGraph:
    if isinstance(graph, WorkflowGraph):
        return graph
    if isinstance(graph, dict):
        return WorkflowGraph.from_dict(graph)
    raise TypeError(f"Expected WorkflowGraph or dict, got {type(graph).__name__}")


def _drop_duplicate_nodes(graph: WorkflowGraph) -> Tuple[WorkflowGraph, List[Diagnostic]]:
    seen = set()
    nodes: List[WorkflowNode] = []
    diagnostics: List[Diagnostic] = []
    for node in graph.nodes:
        if node.id in seen:
            logger.warning(f"Dropping duplicate node id '{node.id}'")
            diagnostics.append(Diagnostic(
                level="warning",
                code=DUPLICATE_NODE,
                message=f"node id '{node.id}' appears more than once; later copies ignored",
                node_id=node.id,
            ))
            continue
        seen.add(node.id)
        nodes.append(node)
    if not diagnostics:
        return graph, diagnostics
    return replace(graph, nodes=nodes), diagnostics


def _unknown_operation_diagnostics(
    graph: WorkflowGraph,
    registry: NodeFunctionRegistry,
) -> List[Diagnostic]:
    diagnostics: List[Diagnostic] = []
    for node in graph.nodes:
        if node.is_condition or node.operation_key in registry:
            continue
        logger.warning(
            f"No generator for '{node.operation_key}' (node '{node.id}'), using fallback"
        )
        diagnostics.append(Diagnostic(
            level="warning",
            code=UNKNOWN_OPERATION,
            message=f"operation '{node.operation_key}' is not registered; fallback emitted",
            node_id=node.id,
        ))
    return diagnostics


def _stats(graph: WorkflowGraph) -> CompileStats:
    stats = CompileStats(nodes=len(graph.nodes))
    for node in graph.nodes:
        if node.kind == "trigger":
            stats.triggers += 1
        elif node.kind == "action":
            stats.actions += 1
        elif node.kind == "transform" or node.is_condition:
            stats.transforms += 1
    return stats


def compile_workflow(
    graph: GraphInput,
    *,
    registry: Optional[NodeFunctionRegistry] = None,
    strict: bool = False,
) -> CompileResult:
    """
    Compile a workflow graph into a CompileResult holding one Code.gs file.

    Args:
        graph:    A WorkflowGraph or its JSON dict.
        registry: Node function registry; defaults to DEFAULT_REGISTRY.
        strict:   Raise CompilationError instead of recording a cycle warning.

    Returns:
        CompileResult with the script, stats and diagnostics.
    """
    registry = registry if registry is not None else DEFAULT_REGISTRY
    source_graph, diagnostics = _drop_duplicate_nodes(_as_graph(graph))

    prepared = prepare_graph(source_graph)
    diagnostics.extend(dangling_edge_diagnostics(prepared))

    index = build_edge_index(prepared)
    ordering = topological_order(prepared, index)
    if ordering.has_cycle:
        diagnostic = cycle_diagnostic(ordering)
        diagnostics.append(diagnostic)
        if strict:
            raise CompilationError(diagnostic.message, diagnostics)
        logger.warning(f"Workflow '{prepared.id}': {diagnostic.message}")

    diagnostics.extend(_unknown_operation_diagnostics(prepared, registry))

    plan = ExecutionPlan(
        order=ordering.order,
        roots=find_roots(prepared, index),
        edge_index=index,
    )
    script = resolve_placeholders(emit(prepared, plan, registry))

    stats = _stats(prepared)
    logger.info(
        f"Compiled workflow '{prepared.id}': {stats.nodes} node(s), "
        f"{len(plan.roots)} root(s), {len(diagnostics)} diagnostic(s)"
    )
    return CompileResult(
        workflow_id=prepared.id,
        graph=source_graph,
        stats=stats,
        files=[CompiledFile(path=SCRIPT_FILENAME, content=script)],
        diagnostics=diagnostics,
    )


def compile_to_script(graph: GraphInput, **kwargs: Any) -> str:
    """Compile and return only the Code.gs source."""
    return compile_workflow(graph, **kwargs).script


__all__ = [
    "CompilationError",
    "CompileResult",
    "DEFAULT_REGISTRY",
    "Diagnostic",
    "NodeFunctionRegistry",
    "SCRIPT_FILENAME",
    "SchemaError",
    "WorkflowGraph",
    "compile_to_script",
    "compile_workflow",
]
