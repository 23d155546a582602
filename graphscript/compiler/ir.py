"""
graphscript compiler: Intermediate Representation
==================================================
WorkflowGraph is a decoupled, read-only snapshot of the graph an upstream
editor produced.

It is the data model shared between all pipeline phases:

    WorkflowGraph  →  [prepare]    →  WorkflowGraph (refs encoded)
                                          ↓
                                   [scheduler]  →  order / roots / edge index
                                                        ↓
                                                   [emitter]  →  Code.gs source

Design goals:
  - Plain dataclasses, serialisable back to the editor's JSON shape.
  - Tolerant of partially specified graphs: missing fields get defaults,
    unknown edge keys are kept in ``extra`` for the branch resolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import Diagnostic


# ── Node ─────────────────────────────────────────────────────────────────────

@dataclass
class WorkflowNode:
    id: str
    type: str                                   # "trigger" | "action" | "transform" | "condition.*"
    app: Optional[str] = None
    op: Optional[str] = None
    name: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    data: Dict[str, Any]   = field(default_factory=dict)

    @property
    def kind(self) -> str:
        """First dotted segment of the type, e.g. "condition" for "condition.if"."""
        return (self.type or "").split(".")[0].strip().lower()

    @property
    def is_condition(self) -> bool:
        return (self.type or "").strip().lower().startswith("condition")

    @property
    def display_name(self) -> str:
        return self.name or str(self.data.get("label") or self.id)

    @property
    def config(self) -> Dict[str, Any]:
        """Merged configuration: params, then data.parameters, then data.config."""
        merged: Dict[str, Any] = {}
        merged.update(self.params or {})
        parameters = self.data.get("parameters")
        if isinstance(parameters, dict):
            merged.update(parameters)
        config = self.data.get("config")
        if isinstance(config, dict):
            merged.update(config)
        return merged

    @property
    def operation_key(self) -> str:
        """
        Registry key for this node's behaviour.

        ``op`` is used as-is when it already looks like a key
        ("action.slack:send_message").  Otherwise the key is assembled as
        "{kind}.{app}:{operation}" from ``app`` + ``data.operation``, or from a
        dotted ``op`` such as "gmail.send_email".
        """
        op = (self.op or "").strip()
        if ":" in op:
            return op.lower()

        kind = self.kind or "action"
        app = (self.app or "").strip()
        operation = str(self.data.get("operation") or "").strip()

        if op and "." in op:
            prefix, _, suffix = op.rpartition(".")
            app = app or prefix
            operation = operation or suffix
        elif op:
            operation = operation or op

        if not app and not operation:
            return kind
        return f"{kind}.{app}:{operation}".lower()

    @classmethod
    def from_dict(cls, spec: Dict[str, Any]) -> "WorkflowNode":
        return cls(
            id=str(spec["id"]),
            type=str(spec.get("type") or "action"),
            app=spec.get("app"),
            op=spec.get("op"),
            name=spec.get("name"),
            params=dict(spec.get("params") or {}),
            data=dict(spec.get("data") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "type": self.type}
        if self.app is not None:
            out["app"] = self.app
        if self.op is not None:
            out["op"] = self.op
        if self.name is not None:
            out["name"] = self.name
        out["params"] = self.params
        out["data"] = self.data
        return out


# ── Edge ─────────────────────────────────────────────────────────────────────

@dataclass
class WorkflowEdge:
    id: str
    source: Optional[str]
    target: Optional[str]
    label: Optional[str]   = None
    data: Dict[str, Any]   = field(default_factory=dict)
    # Every other key of the edge dict (branchValue, isDefault, condition, …)
    extra: Dict[str, Any]  = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.extra.get(key, default)

    @classmethod
    def from_dict(cls, spec: Dict[str, Any]) -> "WorkflowEdge":
        source = spec.get("source") or spec.get("from")
        target = spec.get("target") or spec.get("to")
        known = {"id", "source", "from", "target", "to", "label", "data"}
        data = spec.get("data")
        return cls(
            id=str(spec.get("id") or f"{source}->{target}"),
            source=str(source) if source else None,
            target=str(target) if target else None,
            label=spec.get("label"),
            data=dict(data) if isinstance(data, dict) else {},
            extra={k: v for k, v in spec.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "source": self.source, "target": self.target}
        if self.label is not None:
            out["label"] = self.label
        if self.data:
            out["data"] = self.data
        out.update(self.extra)
        return out


# ── Graph ─────────────────────────────────────────────────────────────────────

@dataclass
class WorkflowGraph:
    id: str
    nodes: List[WorkflowNode] = field(default_factory=list)
    edges: List[WorkflowEdge] = field(default_factory=list)
    name: Optional[str]       = None
    meta: Dict[str, Any]      = field(default_factory=dict)

    # ── Convenience queries ────────────────────────────────────────────────

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    @classmethod
    def from_dict(cls, spec: Dict[str, Any]) -> "WorkflowGraph":
        return cls(
            id=str(spec.get("id") or "workflow"),
            name=spec.get("name"),
            nodes=[WorkflowNode.from_dict(n) for n in spec.get("nodes") or []],
            edges=[WorkflowEdge.from_dict(e) for e in spec.get("edges") or []],
            meta=dict(spec.get("meta") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id":    self.id,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "meta":  self.meta,
        }
        if self.name is not None:
            out["name"] = self.name
        return out


# ── Branch mapping (derived) ──────────────────────────────────────────────────

@dataclass
class BranchMapping:
    edge_id: str
    target_id: str
    label: Optional[str]
    value: Optional[str]
    is_default: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "edgeId":    self.edge_id,
            "targetId":  self.target_id,
            "label":     self.label,
            "value":     self.value,
            "isDefault": self.is_default,
        }


# ── Compile result ────────────────────────────────────────────────────────────

@dataclass
class CompileStats:
    nodes: int = 0
    triggers: int = 0
    actions: int = 0
    transforms: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "nodes":      self.nodes,
            "triggers":   self.triggers,
            "actions":    self.actions,
            "transforms": self.transforms,
        }


@dataclass
class CompiledFile:
    path: str
    content: str


@dataclass
class CompileResult:
    workflow_id: str
    graph: WorkflowGraph
    stats: CompileStats
    files: List[CompiledFile]          = field(default_factory=list)
    diagnostics: List[Diagnostic]      = field(default_factory=list)

    def get_file(self, path: str) -> Optional[CompiledFile]:
        return next((f for f in self.files if f.path == path), None)

    @property
    def script(self) -> str:
        """Content of the primary script file."""
        return self.files[0].content if self.files else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflowId":  self.workflow_id,
            "graph":       self.graph.to_dict(),
            "stats":       self.stats.to_dict(),
            "files":       [{"path": f.path, "content": f.content} for f in self.files],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
