"""
compile_from_json.py: CLI for the graphscript workflow compiler
===============================================================
Compiles a workflow graph JSON file into a single Apps Script file.

Usage
-----
    graphscript-compile <graph.json> [options]
    python -m graphscript.compile_from_json <graph.json> [options]

Options
-------
    --out     <dir>     Output directory (default: $GRAPHSCRIPT_OUT_DIR or compiled/)
                        The script is written to <dir>/<workflow id>/Code.gs
    --print             Print the generated source to stdout instead of writing a file
    --strict            Treat unknown operations and cycles as errors (default: warnings only)

Examples
--------
    # Compile the welcome-email sample:
    graphscript-compile examples/welcome_email.json

    # Print the generated source without writing a file:
    graphscript-compile examples/lead_router.json --print
"""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path

from graphscript.compiler import CompilationError, compile_workflow
from graphscript.compiler.deserialiser import json_to_graph
from graphscript.compiler.schema import SchemaError, validate_file
from graphscript.config import configure_logging, get_settings


def _build_parser(default_out: str) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="graphscript-compile",
        description="Compile a workflow graph JSON file to Apps Script.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument(
        "graph_json",
        metavar="graph.json",
        help="Path to the workflow graph JSON file to compile.",
    )
    p.add_argument(
        "--out",
        metavar="DIR",
        default=default_out,
        help=f"Output directory (default: {default_out}/).",
    )
    p.add_argument(
        "--print",
        dest="print_only",
        action="store_true",
        help="Print generated source to stdout instead of writing a file.",
    )
    p.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Treat unknown operations and cycles as errors rather than warnings.",
    )
    return p


def _workflow_dirname(workflow_id: str) -> str:
    """Turn 'Lead Router / v2' → 'lead_router_v2'."""
    safe = re.sub(r"[^a-z0-9]+", "_", workflow_id.lower()).strip("_")
    return safe or "workflow"


def main(argv=None) -> int:
    settings = get_settings()
    configure_logging(settings)

    parser = _build_parser(settings.out_dir)
    args = parser.parse_args(argv)
    strict = settings.strict if args.strict is None else args.strict

    json_path = Path(args.graph_json)
    if not json_path.exists():
        print(f"[error] File not found: {json_path}", file=sys.stderr)
        return 1

    # ── Validate JSON ────────────────────────────────────────────────────────
    try:
        data = validate_file(json_path, strict=strict)
    except SchemaError as exc:
        print(f"[error] Schema validation failed: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"[error] Invalid JSON in {json_path}: {exc}", file=sys.stderr)
        return 1

    # ── Compile ──────────────────────────────────────────────────────────────
    graph = json_to_graph(data)
    try:
        result = compile_workflow(graph, strict=strict)
    except CompilationError as exc:
        print(f"[error] Compilation failed: {exc}", file=sys.stderr)
        return 1

    if args.print_only:
        print(result.script)
        return 0

    print(f"[graphscript-compile] workflow   : {result.workflow_id}")
    print(f"[graphscript-compile] nodes      : {result.stats.nodes}")
    print(f"[graphscript-compile] triggers   : {result.stats.triggers}")
    print(f"[graphscript-compile] actions    : {result.stats.actions}")
    print(f"[graphscript-compile] transforms : {result.stats.transforms}")
    for diagnostic in result.diagnostics:
        print(f"[{diagnostic.level}] {diagnostic.code}: {diagnostic.message}")

    # ── Output ───────────────────────────────────────────────────────────────
    out_dir = Path(args.out) / _workflow_dirname(result.workflow_id)
    out_dir.mkdir(parents=True, exist_ok=True)
    for compiled in result.files:
        out_path = out_dir / compiled.path
        out_path.write_text(compiled.content, encoding="utf-8")
        print(f"[graphscript-compile] wrote      : {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
