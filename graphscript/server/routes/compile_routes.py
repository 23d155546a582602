"""
Compile REST routes.

All routes are mounted under /api by main.py.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from graphscript.compiler import CompilationError, compile_workflow
from graphscript.compiler.deserialiser import json_to_graph
from graphscript.compiler.schema import SchemaError, validate
from graphscript.compiler.templates import DEFAULT_REGISTRY

logger = logging.getLogger(__name__)

router = APIRouter()


# ── POST /compile ─────────────────────────────────────────────────────────────

class CompileBody(BaseModel):
    graph: Dict[str, Any]
    strict: bool = False


@router.post("/compile")
async def compile_graph(body: CompileBody) -> Dict[str, Any]:
    try:
        validate(body.graph, strict=body.strict)
    except SchemaError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    try:
        result = compile_workflow(json_to_graph(body.graph), strict=body.strict)
    except CompilationError as exc:
        logger.warning(f"Compilation rejected: {exc}")
        raise HTTPException(
            status_code=409,
            detail={
                "message": str(exc),
                "diagnostics": [d.to_dict() for d in exc.diagnostics],
            },
        )
    return result.to_dict()


# ── GET /operations ───────────────────────────────────────────────────────────

@router.get("/operations")
async def list_operations() -> List[Dict[str, Any]]:
    return [
        {
            "key": entry.key,
            "description": entry.description,
            "runtime": list(entry.runtime),
        }
        for entry in DEFAULT_REGISTRY
    ]
