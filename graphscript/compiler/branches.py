"""
graphscript compiler: Condition branch resolution
==================================================
Editors label the outgoing edges of a condition node in many different ways
("Yes"/"No", ``branchValue: true``, ``data.branchLabel``, a nested
``condition`` object, …).  resolve_branches() folds all of them into one
BranchMapping per edge, whose ``value`` is the branch key the generated
script compares against the node's decision ("true" / "false" / literal).

Label lookup order
------------------
    edge.label → edge.data.label → edge.branchLabel
               → edge.data.branchLabel → edge.condition.label

Raw value lookup order
----------------------
    edge.branchValue → edge.data.branchValue → edge.condition.value → label

Binary and single-branch conditions are always given a usable key pair, see
_force_binary_keys().
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .ir import BranchMapping, WorkflowEdge, WorkflowNode
from .scheduler import EdgeIndex

logger = logging.getLogger(__name__)


TRUTHY_TOKENS = frozenset({"true", "yes", "1", "y"})
FALSY_TOKENS  = frozenset({"false", "no", "0", "n"})

_DEFAULT_MARKERS = ("isDefault", "default")


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _first_text(*candidates: Any) -> Optional[str]:
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def _first_value(*candidates: Any) -> Any:
    for candidate in candidates:
        if not _is_empty(candidate):
            return candidate
    return None


def _condition_of(edge: WorkflowEdge) -> Dict[str, Any]:
    condition = edge.get("condition")
    return condition if isinstance(condition, dict) else {}


def _is_marked(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in FALSY_TOKENS and bool(value.strip())
    return bool(value)


# ── Field extraction ─────────────────────────────────────────────────────────

def branch_label(edge: WorkflowEdge) -> Optional[str]:
    return _first_text(
        edge.label,
        edge.data.get("label"),
        edge.get("branchLabel"),
        edge.data.get("branchLabel"),
        _condition_of(edge).get("label"),
    )


def raw_branch_value(edge: WorkflowEdge, label: Optional[str] = None) -> Any:
    return _first_value(
        edge.get("branchValue"),
        edge.data.get("branchValue"),
        _condition_of(edge).get("value"),
        label,
    )


def is_default_branch(edge: WorkflowEdge, raw_value: Any = None) -> bool:
    condition = _condition_of(edge)
    for source in (edge.extra, edge.data, condition):
        if any(_is_marked(source.get(marker)) for marker in _DEFAULT_MARKERS):
            return True
    return isinstance(raw_value, str) and raw_value.strip().lower() == "default"


def normalize_branch_value(raw: Any, default: Optional[str] = None) -> Optional[str]:
    """
    Normalise a raw branch value to the key compared at runtime.

        True / False          → "true" / "false"
        None / ""             → ``default``
        yes, y, 1, true       → "true"     (case-insensitive)
        no, n, 0, false       → "false"
        anything else         → trimmed text
    """
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if _is_empty(raw):
        return default

    text = str(raw).strip()
    lowered = text.lower()
    if lowered in TRUTHY_TOKENS:
        return "true"
    if lowered in FALSY_TOKENS:
        return "false"
    return text


# ── Public API ───────────────────────────────────────────────────────────────

def _force_binary_keys(branches: List[BranchMapping]) -> None:
    if len(branches) == 1:
        only = branches[0]
        if only.value is None:
            only.value = "true"
        only.is_default = True
        return

    if len(branches) == 2:
        keys = {b.value for b in branches}
        if "true" not in keys and "false" not in keys:
            branches[0].value = "true"
            branches[1].value = "false"


def resolve_branches(node: WorkflowNode, edge_index: EdgeIndex) -> List[BranchMapping]:
    """Build the normalised branch mapping for every outgoing edge of ``node``."""
    edges = edge_index.get(node.id, [])
    binary = len(edges) == 2

    branches: List[BranchMapping] = []
    for position, edge in enumerate(edges):
        label = branch_label(edge)
        raw = raw_branch_value(edge, label)
        default = ("true", "false")[position] if binary else None
        branches.append(BranchMapping(
            edge_id=edge.id,
            target_id=edge.target,
            label=label,
            value=normalize_branch_value(raw, default),
            is_default=is_default_branch(edge, raw),
        ))

    _force_binary_keys(branches)
    logger.debug(
        f"Condition '{node.id}' branches: "
        + ", ".join(f"{b.target_id}={b.value}{'*' if b.is_default else ''}" for b in branches)
    )
    return branches


__all__ = [
    "FALSY_TOKENS",
    "TRUTHY_TOKENS",
    "branch_label",
    "is_default_branch",
    "normalize_branch_value",
    "raw_branch_value",
    "resolve_branches",
]
