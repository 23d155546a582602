"""
graphscript compiler: Execution scheduler
=========================================
Maps a WorkflowGraph onto the flat, ordered plan the emitter walks.

Three queries, all keyed off the same edge index:

  build_edge_index   source node id → outgoing edges.  Edges with a missing
                     or unknown endpoint are dropped (dangling-edge tolerance).

  topological_order  Kahn's algorithm.  Ties between nodes that become ready
                     together are broken by queue insertion order, which
                     follows the original node array.  Nodes never released
                     (cycles) are appended afterwards in array order and
                     reported in ``unresolved``.

  find_roots         nodes with indegree zero; the generated script marks
                     these active before the first block runs.

Every query is deterministic for a given node and edge order.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import CYCLE, DANGLING_EDGE, Diagnostic
from .ir import WorkflowEdge, WorkflowGraph

logger = logging.getLogger(__name__)


EdgeIndex = Dict[str, List[WorkflowEdge]]


@dataclass
class TopologicalOrder:
    order: List[str]      = field(default_factory=list)
    # Node ids appended after the Kahn pass (members of, or downstream of, a cycle).
    unresolved: List[str] = field(default_factory=list)

    @property
    def has_cycle(self) -> bool:
        return bool(self.unresolved)


# ── Edge index ───────────────────────────────────────────────────────────────

def build_edge_index(graph: WorkflowGraph) -> EdgeIndex:
    known = set(graph.node_ids)
    index: EdgeIndex = {}
    for edge in graph.edges:
        if not edge.source or not edge.target:
            continue
        if edge.source not in known or edge.target not in known:
            continue
        index.setdefault(edge.source, []).append(edge)
    return index


def dangling_edge_diagnostics(graph: WorkflowGraph) -> List[Diagnostic]:
    known = set(graph.node_ids)
    diagnostics: List[Diagnostic] = []
    for edge in graph.edges:
        missing = [end for end in (edge.source, edge.target) if not end or end not in known]
        if not missing:
            continue
        logger.warning(f"Ignoring edge '{edge.id}': unknown endpoint(s) {missing}")
        diagnostics.append(Diagnostic(
            level="warning",
            code=DANGLING_EDGE,
            message=f"edge '{edge.id}' references missing node(s): "
                    + ", ".join(repr(m) for m in missing),
            edge_id=edge.id,
        ))
    return diagnostics


# ── Indegrees / roots ────────────────────────────────────────────────────────

def _indegrees(graph: WorkflowGraph, index: EdgeIndex) -> Dict[str, int]:
    indegree = {node_id: 0 for node_id in graph.node_ids}
    for edges in index.values():
        for edge in edges:
            indegree[edge.target] += 1
    return indegree


def find_roots(graph: WorkflowGraph, index: Optional[EdgeIndex] = None) -> List[str]:
    if index is None:
        index = build_edge_index(graph)
    indegree = _indegrees(graph, index)
    return [node_id for node_id in graph.node_ids if indegree[node_id] == 0]


# ── Topological sort ─────────────────────────────────────────────────────────

def topological_order(graph: WorkflowGraph, index: Optional[EdgeIndex] = None) -> TopologicalOrder:
    if index is None:
        index = build_edge_index(graph)
    indegree = _indegrees(graph, index)

    queue = deque(node_id for node_id in graph.node_ids if indegree[node_id] == 0)
    order: List[str] = []
    visited = set()

    while queue:
        node_id = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)
        order.append(node_id)
        for edge in index.get(node_id, []):
            indegree[edge.target] -= 1
            if indegree[edge.target] == 0:
                queue.append(edge.target)

    unresolved = [node_id for node_id in graph.node_ids if node_id not in visited]
    if unresolved:
        logger.debug(f"Appending {len(unresolved)} node(s) left after Kahn pass: {unresolved}")

    return TopologicalOrder(order=order + unresolved, unresolved=unresolved)


def cycle_diagnostic(result: TopologicalOrder) -> Diagnostic:
    return Diagnostic(
        level="warning",
        code=CYCLE,
        message="graph contains a cycle; these nodes may never be activated: "
                + ", ".join(result.unresolved),
        node_id=result.unresolved[0] if result.unresolved else None,
    )


__all__ = [
    "EdgeIndex",
    "TopologicalOrder",
    "build_edge_index",
    "cycle_diagnostic",
    "dangling_edge_diagnostics",
    "find_roots",
    "topological_order",
]
