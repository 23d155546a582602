"""
graphscript compiler: Generated-script runtime
===============================================
JavaScript helper sections inlined at the top of every compiled Code.gs.

The target host runs top-level functions synchronously, one at a time, so the
helpers below hold all per-run state in plain globals that main() resets:

    __nodeOutputs   nodeId → stored output (cloned on store and on read)
    __state         nodeId → 'pending' | 'active' | 'done'
    __currentNodeId id of the node function currently running

Sections
--------
  logging     logStructured / logInfo / logWarn / logError
  core        path lookup, output store, activation state, step runner,
              condition evaluation, branch selection, interpolate()
  http        withRetries() backoff and fetchJson(); only emitted when a
              node function needs it

A section is emitted at most once, in RUNTIME_ORDER.
"""

from __future__ import annotations

import textwrap
from typing import Iterable, List


_LOGGING = textwrap.dedent("""\
    function logStructured(level, event, details) {
      var payload = {
        level: level,
        event: event,
        details: details || {},
        timestamp: new Date().toISOString()
      };
      var message = '[' + payload.level + '] ' + payload.event + ' ' + JSON.stringify(payload.details);
      if (level === 'ERROR') {
        console.error(message);
      } else if (level === 'WARN') {
        console.warn(message);
      } else {
        console.log(message);
      }
    }

    function logInfo(event, details) {
      logStructured('INFO', event, details);
    }

    function logWarn(event, details) {
      logStructured('WARN', event, details);
    }

    function logError(event, details) {
      logStructured('ERROR', event, details);
    }
    """)


_CORE = textwrap.dedent("""\
    var __nodeOutputs = {};
    var __state = {};
    var __currentNodeId = null;

    function __errorMessage(error) {
      return error && error.message ? error.message : String(error);
    }

    function __cloneOutput(value) {
      if (value === null || value === undefined || typeof value !== 'object') {
        return value;
      }
      try {
        return JSON.parse(JSON.stringify(value));
      } catch (error) {
        return value;
      }
    }

    function __readPath(root, path) {
      var normalized = path === undefined || path === null ? '' : String(path).trim();
      if (normalized.charAt(0) === '$') {
        normalized = normalized.substring(1);
      }
      if (normalized.charAt(0) === '.') {
        normalized = normalized.substring(1);
      }
      if (!normalized) {
        return root;
      }
      var segments = normalized.split('.');
      var current = root;
      for (var i = 0; i < segments.length; i++) {
        if (current === null || current === undefined) {
          return undefined;
        }
        var segment = segments[i];
        if (Array.isArray(current) && /^\\d+$/.test(segment)) {
          current = current[Number(segment)];
        } else {
          current = current[segment];
        }
      }
      return current;
    }

    function __getNodeOutputValue(nodeId, path) {
      if (!Object.prototype.hasOwnProperty.call(__nodeOutputs, nodeId)) {
        return undefined;
      }
      return __cloneOutput(__readPath(__nodeOutputs[nodeId], path));
    }

    function __storeNodeOutput(nodeId, output) {
      if (Object.prototype.hasOwnProperty.call(__nodeOutputs, nodeId)) {
        logWarn('node_output_already_stored', { nodeId: nodeId });
        return __nodeOutputs[nodeId];
      }
      __nodeOutputs[nodeId] = __cloneOutput(output);
      return __nodeOutputs[nodeId];
    }

    function __resetRun(nodeIds, rootIds) {
      __nodeOutputs = {};
      __state = {};
      for (var i = 0; i < nodeIds.length; i++) {
        __state[nodeIds[i]] = 'pending';
      }
      for (var j = 0; j < rootIds.length; j++) {
        __state[rootIds[j]] = 'active';
      }
    }

    function __isActive(nodeId) {
      return __state[nodeId] === 'active';
    }

    function __markDone(nodeId) {
      __state[nodeId] = 'done';
    }

    function __activate(nodeId) {
      if (__state[nodeId] === 'pending') {
        __state[nodeId] = 'active';
        return true;
      }
      return false;
    }

    function __runStep(nodeId, label, fn, ctx) {
      var startedAt = new Date().getTime();
      __currentNodeId = nodeId;
      try {
        var result = fn(ctx);
        if (result === undefined || result === null) {
          result = ctx;
        }
        logInfo('step_completed', { nodeId: nodeId, label: label, durationMs: new Date().getTime() - startedAt });
        return result;
      } catch (error) {
        var message = __errorMessage(error);
        logError('step_failed', { nodeId: nodeId, label: label, message: message });
        ctx = ctx || {};
        if (!Array.isArray(ctx.__errors)) {
          ctx.__errors = [];
        }
        ctx.__errors.push({ nodeId: nodeId, message: message });
        return ctx;
      }
    }

    function __evaluateCondition(rule, ctx) {
      var decision = { evaluation: null, error: null };
      try {
        var value = rule;
        if (value && typeof value === 'object' && !Array.isArray(value) &&
            Object.prototype.hasOwnProperty.call(value, 'value')) {
          value = value.value;
        }
        if (typeof value === 'string') {
          var text = value.trim();
          var lowered = text.toLowerCase();
          if (!text) {
            value = false;
          } else if (lowered === 'true' || lowered === 'yes' || lowered === 'y' || lowered === '1') {
            value = true;
          } else if (lowered === 'false' || lowered === 'no' || lowered === 'n' || lowered === '0') {
            value = false;
          } else {
            var evaluate = new Function('ctx', 'nodeOutputs', 'with (ctx || {}) { return (' + text + '); }');
            value = evaluate(ctx || {}, __nodeOutputs);
          }
        }
        decision.evaluation = value;
      } catch (error) {
        decision.evaluation = false;
        decision.error = __errorMessage(error);
      }
      return decision;
    }

    function __normalizeBranchKey(evaluation) {
      return evaluation ? 'true' : 'false';
    }

    function __selectBranchTargets(branches, branchKey) {
      var targets = [];
      var i;
      for (i = 0; i < branches.length; i++) {
        if (branches[i].value === branchKey) {
          targets.push(branches[i].targetId);
        }
      }
      if (targets.length === 0) {
        for (i = 0; i < branches.length; i++) {
          if (branches[i].isDefault) {
            targets.push(branches[i].targetId);
          }
        }
      }
      if (targets.length === 0 && branches.length === 1) {
        targets.push(branches[0].targetId);
      }
      return targets;
    }

    function interpolate(template, ctx) {
      if (typeof template !== 'string') {
        return template;
      }
      return template.replace(/\\{\\{\\s*([^}]+?)\\s*\\}\\}/g, function (match, path) {
        var value = __readPath(ctx || {}, path);
        if (value === null || value === undefined) {
          return '';
        }
        return typeof value === 'object' ? JSON.stringify(value) : String(value);
      });
    }

    function __interpolateValue(template, ctx) {
      if (Array.isArray(template)) {
        var items = [];
        for (var i = 0; i < template.length; i++) {
          items.push(__interpolateValue(template[i], ctx));
        }
        return items;
      }
      if (template && typeof template === 'object') {
        var resolved = {};
        for (var key in template) {
          if (Object.prototype.hasOwnProperty.call(template, key)) {
            resolved[key] = __interpolateValue(template[key], ctx);
          }
        }
        return resolved;
      }
      return interpolate(template, ctx);
    }
    """)


_HTTP = textwrap.dedent("""\
    var __HTTP_RETRY_DEFAULTS = {
      maxAttempts: 5,
      initialDelayMs: 500,
      backoffFactor: 2,
      maxDelayMs: 60000
    };

    function __normalizeHeaders(headers) {
      var normalized = {};
      if (!headers) {
        return normalized;
      }
      for (var key in headers) {
        if (Object.prototype.hasOwnProperty.call(headers, key)) {
          normalized[String(key).toLowerCase()] = headers[key];
        }
      }
      return normalized;
    }

    function __resolveRetryAfterMs(value) {
      if (value === null || value === undefined) {
        return null;
      }
      if (Array.isArray(value)) {
        value = value.length > 0 ? value[0] : '';
      }
      var raw = String(value).trim();
      if (!raw) {
        return null;
      }
      var asNumber = Number(raw);
      var now = new Date().getTime();
      if (!isNaN(asNumber)) {
        if (asNumber > 1000000000000) {
          return Math.max(0, Math.round(asNumber - now));
        }
        if (asNumber > 1000000000) {
          return Math.max(0, Math.round(asNumber * 1000 - now));
        }
        return Math.max(0, Math.round(asNumber * 1000));
      }
      var parsedDate = new Date(raw);
      if (!isNaN(parsedDate.getTime())) {
        return Math.max(0, parsedDate.getTime() - now);
      }
      return null;
    }

    function __isRetryableStatus(status) {
      return status === 429 || (status >= 500 && status < 600);
    }

    function withRetries(fn, options) {
      var config = options || {};
      var attempts = config.maxAttempts || __HTTP_RETRY_DEFAULTS.maxAttempts;
      var delay = config.initialDelayMs || __HTTP_RETRY_DEFAULTS.initialDelayMs;
      var backoffFactor = config.backoffFactor || __HTTP_RETRY_DEFAULTS.backoffFactor;
      var maxDelayMs = config.maxDelayMs || __HTTP_RETRY_DEFAULTS.maxDelayMs;

      for (var attempt = 1; ; attempt++) {
        try {
          return fn(attempt);
        } catch (error) {
          var status = error && typeof error.status === 'number' ? error.status : null;
          if ((status !== null && !__isRetryableStatus(status)) || attempt >= attempts) {
            logError('http_retry_exhausted', { attempts: attempt, status: status, message: __errorMessage(error) });
            throw error;
          }
          var headers = __normalizeHeaders(error && error.headers);
          var retryAfterMs = __resolveRetryAfterMs(headers['retry-after']);
          var waitMs = Math.min(retryAfterMs !== null ? retryAfterMs : delay, maxDelayMs);
          logWarn('http_retry_scheduled', { attempt: attempt, status: status, delayMs: waitMs });
          Utilities.sleep(waitMs);
          delay = Math.min(delay * backoffFactor, maxDelayMs);
        }
      }
    }

    function fetchJson(request) {
      var options = {
        method: String(request.method || 'GET').toLowerCase(),
        headers: request.headers || {},
        muteHttpExceptions: true
      };
      if (request.payload !== undefined && request.payload !== null) {
        options.payload = typeof request.payload === 'string' ? request.payload : JSON.stringify(request.payload);
        options.contentType = request.contentType || 'application/json';
      }
      return withRetries(function () {
        var response = UrlFetchApp.fetch(request.url, options);
        var status = response.getResponseCode();
        var headers = typeof response.getAllHeaders === 'function' ? response.getAllHeaders() : {};
        var text = response.getContentText();
        var body = text;
        try {
          body = text ? JSON.parse(text) : null;
        } catch (error) {
          body = text;
        }
        if (status >= 400) {
          var failure = new Error('HTTP ' + status + ' for ' + request.url);
          failure.status = status;
          failure.headers = headers;
          failure.body = body;
          throw failure;
        }
        return { status: status, headers: headers, body: body };
      }, request.retry);
    }
    """)


RUNTIME_SECTIONS = {
    "logging": _LOGGING,
    "core":    _CORE,
    "http":    _HTTP,
}

RUNTIME_ORDER = ("logging", "core", "http")

# Always emitted, whatever the node functions need.
BASE_SECTIONS = ("logging", "core")


def runtime_prelude(extra_sections: Iterable[str] = ()) -> List[str]:
    """Return the prelude lines for the base sections plus ``extra_sections``."""
    wanted = set(BASE_SECTIONS) | set(extra_sections)
    unknown = wanted - set(RUNTIME_SECTIONS)
    if unknown:
        raise KeyError(f"Unknown runtime section(s): {sorted(unknown)}")

    lines: List[str] = []
    for name in RUNTIME_ORDER:
        if name in wanted:
            lines.extend(RUNTIME_SECTIONS[name].splitlines())
            lines.append("")
    return lines


__all__ = ["BASE_SECTIONS", "RUNTIME_ORDER", "RUNTIME_SECTIONS", "runtime_prelude"]
