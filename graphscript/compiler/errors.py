"""
graphscript compiler: errors and diagnostics
============================================
Most graph problems are reported as
Diagnostic records on the CompileResult instead of being raised.

Only two exception types exist:

  SchemaError       graph JSON is structurally unusable (not a list of
                      nodes, duplicate ids, …).
  CompilationError  raised by strict compilation when the graph cannot be
                      ordered (cycles).  Non-strict runs record a "cycle"
                      warning and carry on.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional


# ── Diagnostic codes ──────────────────────────────────────────────────────────

DANGLING_EDGE     = "dangling-edge"
CYCLE             = "cycle"
UNKNOWN_OPERATION = "unknown-operation"
DUPLICATE_NODE    = "duplicate-node"


@dataclass
class Diagnostic:
    level: str                     # "warning" | "error"
    code: str
    message: str
    node_id: Optional[str] = None
    edge_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "level":   data["level"],
            "code":    data["code"],
            "message": data["message"],
            "nodeId":  data["node_id"],
            "edgeId":  data["edge_id"],
        }


# ── Exceptions ────────────────────────────────────────────────────────────────

class SchemaError(ValueError):
    """Raised when graph JSON fails structural validation."""


class CompilationError(Exception):
    """Raised by strict compilation when the graph cannot be ordered safely."""

    def __init__(self, message: str, diagnostics: Optional[List[Diagnostic]] = None):
        super().__init__(message)
        self.diagnostics: List[Diagnostic] = list(diagnostics or [])


__all__ = [
    "CYCLE",
    "CompilationError",
    "DANGLING_EDGE",
    "DUPLICATE_NODE",
    "Diagnostic",
    "SchemaError",
    "UNKNOWN_OPERATION",
]
