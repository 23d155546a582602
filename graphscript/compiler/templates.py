"""
graphscript compiler: Node function templates
==============================================
Every workflow node compiles to one top-level function in Code.gs:

    function step_<node_id>(ctx) {
      <body>
    }

The body comes from a generator looked up by the node's operation key in a
NodeFunctionRegistry.  A generator is a plain function:

    (config: dict) -> str        # JavaScript statements, must return ctx

Adding a new operation
----------------------
    @DEFAULT_REGISTRY.register("action.slack:send_message", runtime=("http",))
    def slack_send_message(config):
        return "...; return ctx;"

``runtime`` names extra prelude sections (see runtime.py) the body relies on.

If a key is not registered the registry answers with the fallback entry, whose
body logs the operation and returns ctx marked with ``__fallback``.  Condition
nodes never go through the registry: condition_function_body() builds their
decision function directly.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .ir import WorkflowNode
from .prepare import prepare_value

logger = logging.getLogger(__name__)


NodeFunctionGenerator = Callable[[Dict[str, Any]], str]


# ── Code writer ───────────────────────────────────────────────────────────────

class CodeWriter:
    """Simple indented string accumulator."""

    def __init__(self, indent: int = 0, unit: str = "  "):
        self._lines: List[str] = []
        self._indent = indent
        self._unit = unit

    def writeln(self, line: str = "") -> "CodeWriter":
        if line:
            self._lines.append(self._unit * self._indent + line)
        else:
            self._lines.append("")
        return self

    def blank(self) -> "CodeWriter":
        return self.writeln()

    def comment(self, text: str) -> "CodeWriter":
        return self.writeln(f"// {text}")

    def push(self) -> "CodeWriter":
        self._indent += 1
        return self

    def pop(self) -> "CodeWriter":
        self._indent = max(0, self._indent - 1)
        return self

    def extend(self, lines: List[str]) -> "CodeWriter":
        for line in lines:
            self.writeln(line)
        return self

    def block(self, text: str) -> "CodeWriter":
        """Write a multi-line snippet at the current indent."""
        return self.extend(text.strip("\n").splitlines())

    def lines(self) -> List[str]:
        return self._lines

    def result(self) -> str:
        return "\n".join(self._lines)


def js_literal(value: Any) -> str:
    """JSON is valid JavaScript; placeholder tokens stay double-quoted strings."""
    return json.dumps(value, ensure_ascii=False, default=str)


# ── Registry ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RegisteredOperation:
    key: str
    generator: NodeFunctionGenerator
    runtime: Tuple[str, ...] = ()
    description: str = ""
    is_fallback: bool = False

    def render(self, config: Dict[str, Any]) -> str:
        return self.generator(config)


def fallback_function_body(operation_key: str) -> NodeFunctionGenerator:
    key_literal = js_literal(operation_key)

    def _body(config: Dict[str, Any]) -> str:
        return "\n".join([
            f"logWarn('operation_not_implemented', {{ operation: {key_literal}, context: ctx }});",
            "ctx = ctx || {};",
            f"ctx.__fallback = {{ operation: {key_literal}, nodeId: __currentNodeId, handled: false }};",
            "return ctx;",
        ])

    return _body


class NodeFunctionRegistry:
    """Operation key → node function generator, with the fallback as default entry."""

    def __init__(self, entries: Optional[Dict[str, RegisteredOperation]] = None):
        self._entries: Dict[str, RegisteredOperation] = dict(entries or {})

    @staticmethod
    def normalize_key(key: str) -> str:
        return str(key or "").strip().lower()

    def add(
        self,
        key: str,
        generator: NodeFunctionGenerator,
        *,
        runtime: Tuple[str, ...] = (),
        description: str = "",
    ) -> RegisteredOperation:
        normalized = self.normalize_key(key)
        if not normalized:
            raise ValueError("operation key must be a non-empty string")
        if normalized in self._entries:
            logger.debug(f"Replacing node function generator for '{normalized}'")
        entry = RegisteredOperation(
            key=normalized,
            generator=generator,
            runtime=tuple(runtime),
            description=description or (generator.__doc__ or "").strip().split("\n")[0],
        )
        self._entries[normalized] = entry
        return entry

    def register(self, key: str, *, runtime: Tuple[str, ...] = (), description: str = ""):
        """Decorator form of add()."""
        def _decorator(generator: NodeFunctionGenerator) -> NodeFunctionGenerator:
            self.add(key, generator, runtime=runtime, description=description)
            return generator
        return _decorator

    def get(self, key: str) -> RegisteredOperation:
        normalized = self.normalize_key(key)
        entry = self._entries.get(normalized)
        if entry is not None:
            return entry
        return RegisteredOperation(
            key=normalized,
            generator=fallback_function_body(normalized),
            description="generic fallback",
            is_fallback=True,
        )

    def generate(self, key: str, config: Dict[str, Any]) -> str:
        return self.get(key).render(config)

    def copy(self) -> "NodeFunctionRegistry":
        return NodeFunctionRegistry(self._entries)

    def keys(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.normalize_key(key) in self._entries

    def __iter__(self) -> Iterator[RegisteredOperation]:
        return iter(self._entries[k] for k in self.keys())

    def __len__(self) -> int:
        return len(self._entries)


DEFAULT_REGISTRY = NodeFunctionRegistry()


# ── Built-in operations ───────────────────────────────────────────────────────

@DEFAULT_REGISTRY.register("trigger.core:manual")
def manual_trigger(config: Dict[str, Any]) -> str:
    """Starts a run by hand; config.payload supplies defaults for missing ctx keys."""
    payload = config.get("payload") if isinstance(config.get("payload"), dict) else {}
    return "\n".join([
        "ctx = ctx || {};",
        f"var defaults = {js_literal(payload)};",
        "for (var key in defaults) {",
        "  if (Object.prototype.hasOwnProperty.call(defaults, key) && ctx[key] === undefined) {",
        "    ctx[key] = defaults[key];",
        "  }",
        "}",
        "logInfo('manual_trigger_fired', { keys: Object.keys(ctx) });",
        "return ctx;",
    ])


@DEFAULT_REGISTRY.register("trigger.core:webhook")
def webhook_trigger(config: Dict[str, Any]) -> str:
    """Exposes the incoming request body as ctx.webhook."""
    path = str(config.get("path") or "/")
    return "\n".join([
        "ctx = ctx || {};",
        "var body = ctx.request && ctx.request.body !== undefined ? ctx.request.body : (ctx.payload || {});",
        f"ctx.webhook = {{ path: {js_literal(path)}, body: body, receivedAt: new Date().toISOString() }};",
        f"logInfo('webhook_received', {{ path: {js_literal(path)} }});",
        "return ctx;",
    ])


@DEFAULT_REGISTRY.register("trigger.core:schedule")
def schedule_trigger(config: Dict[str, Any]) -> str:
    """Records the schedule that fired the run as ctx.schedule."""
    schedule = {
        "frequency": config.get("frequency") or "hourly",
        "timezone":  config.get("timezone") or "UTC",
    }
    return "\n".join([
        "ctx = ctx || {};",
        f"var schedule = {js_literal(schedule)};",
        "schedule.firedAt = new Date().toISOString();",
        "ctx.schedule = schedule;",
        "logInfo('schedule_fired', schedule);",
        "return ctx;",
    ])


@DEFAULT_REGISTRY.register("action.http:request", runtime=("http",))
def http_request(config: Dict[str, Any]) -> str:
    """Performs one HTTP call; stores the parsed body and status on ctx."""
    request = {
        "url":     config.get("url") or "",
        "method":  str(config.get("method") or "GET").upper(),
        "headers": config.get("headers") or {},
    }
    if config.get("body") is not None:
        request["payload"] = config["body"]
    output_key = str(config.get("outputKey") or "httpResponse")
    return "\n".join([
        "ctx = ctx || {};",
        f"var request = __interpolateValue({js_literal(request)}, ctx);",
        "var response = fetchJson(request);",
        f"ctx[{js_literal(output_key)}] = response.body;",
        f"ctx[{js_literal(output_key + 'Status')}] = response.status;",
        "return ctx;",
    ])


@DEFAULT_REGISTRY.register("transform.core:set_fields")
def set_fields(config: Dict[str, Any]) -> str:
    """Assigns config.fields (interpolated) onto ctx."""
    fields = config.get("fields") if isinstance(config.get("fields"), dict) else {}
    return "\n".join([
        "ctx = ctx || {};",
        f"var fields = __interpolateValue({js_literal(fields)}, ctx);",
        "for (var key in fields) {",
        "  if (Object.prototype.hasOwnProperty.call(fields, key)) {",
        "    ctx[key] = fields[key];",
        "  }",
        "}",
        "return ctx;",
    ])


@DEFAULT_REGISTRY.register("transform.core:format_text")
def format_text(config: Dict[str, Any]) -> str:
    """Renders config.template with {{path}} placeholders into ctx[outputKey]."""
    template = config.get("template")
    output_key = str(config.get("outputKey") or "text")
    return "\n".join([
        "ctx = ctx || {};",
        f"ctx[{js_literal(output_key)}] = interpolate({js_literal(template if template is not None else '')}, ctx);",
        "return ctx;",
    ])


@DEFAULT_REGISTRY.register("action.core:log")
def log_message(config: Dict[str, Any]) -> str:
    """Writes one structured log line."""
    event = str(config.get("event") or "workflow_log")
    message = config.get("message")
    return "\n".join([
        f"logInfo({js_literal(event)}, {{ message: interpolate({js_literal(message if message is not None else '')}, ctx) }});",
        "return ctx;",
    ])


# ── Condition nodes ───────────────────────────────────────────────────────────

_RULE_KEYS = ("rule", "expression", "condition")


def condition_rule(node: WorkflowNode) -> Any:
    """
    Locate the boolean rule of a condition node.

    Lookup order: data.rule, then rule, expression or condition in
    data.config, data.parameters and params.  Returns None when nothing is set.
    """
    if node.data.get("rule") is not None:
        return prepare_value(node.data["rule"])

    sources = [node.data.get("config"), node.data.get("parameters"), node.params]
    for source in sources:
        if not isinstance(source, dict):
            continue
        for key in _RULE_KEYS:
            if source.get(key) is not None:
                return prepare_value(source[key])
    return None


def condition_function_body(node_id: str, rule: Any) -> str:
    id_literal = js_literal(node_id)
    return "\n".join([
        f"var rule = {js_literal(rule)};",
        "var decision = __evaluateCondition(rule, ctx);",
        "var matchedBranch = __normalizeBranchKey(decision.evaluation);",
        f"logInfo('condition_evaluated', {{ nodeId: {id_literal}, matchedBranch: matchedBranch, error: decision.error }});",
        "return {",
        f"  nodeId: {id_literal},",
        "  matchedBranch: matchedBranch,",
        "  evaluation: decision.evaluation,",
        "  error: decision.error",
        "};",
    ])


__all__ = [
    "CodeWriter",
    "DEFAULT_REGISTRY",
    "NodeFunctionGenerator",
    "NodeFunctionRegistry",
    "RegisteredOperation",
    "condition_function_body",
    "condition_rule",
    "fallback_function_body",
    "js_literal",
]
