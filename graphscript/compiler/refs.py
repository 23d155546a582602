"""
graphscript compiler: Cross-node value references
==================================================
A node's config may point at another node's output:

    {"mode": "ref", "nodeId": "n1", "path": "$.user.email"}

The target host has no way to express that lookup while node functions are
still being generated as text, so the compiler works in two steps:

  1. encode_ref() turns the reference into a placeholder token, an ordinary
     string that survives being written into any quoted literal:

         __GSREF__eyJub2RlSWQiOiJuMSIsInBhdGgiOiIkLnVzZXIuZW1haWwifQ

  2. resolve_placeholders() runs once over the finished script and rewrites
     every quoted token into a runtime call expression:

         'TOKEN'   →   __getNodeOutputValue("n1", "$.user.email")

Token grammar
-------------
    REF_PREFIX + urlsafe_base64(json({"nodeId": …, "path": …}))   (no padding)

Only a token that is immediately wrapped by the same quote character on both
sides (' " or `) is rewritten.  Anything else is left byte-for-byte as is.
"""

from __future__ import annotations

import base64
import json
import logging
import re
import string
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


REF_PREFIX = "__GSREF__"
LOOKUP_FUNCTION = "__getNodeOutputValue"

_QUOTES = ("'", '"', "`")
_ALPHABET = frozenset(string.ascii_letters + string.digits + "-_")
_TOKEN_RE = re.compile(re.escape(REF_PREFIX) + r"[A-Za-z0-9_-]*")


@dataclass(frozen=True)
class ValueRef:
    node_id: str
    path: str = ""


# ── Encode / decode ──────────────────────────────────────────────────────────

def encode_ref(node_id: str, path: Optional[str] = None) -> str:
    """
    Encode a (node_id, path) reference as a placeholder token.

    Raises ValueError for an empty node id, which no token can carry.
    """
    node_id = str(node_id or "")
    if not node_id:
        raise ValueError("value reference needs a non-empty node id")
    # ASCII escapes keep lone surrogates encodable.
    payload = json.dumps(
        {"nodeId": node_id, "path": path or ""},
        separators=(",", ":"),
        ensure_ascii=True,
    )
    encoded = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")
    return REF_PREFIX + encoded.rstrip("=")


def decode_ref(token: str) -> Optional[ValueRef]:
    """
    Inverse of encode_ref().

    Returns None for anything that is not a well-formed token; never raises.
    """
    if not isinstance(token, str) or not _TOKEN_RE.fullmatch(token):
        return None

    encoded = token[len(REF_PREFIX):]
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded).decode("utf-8"))
    except ValueError:
        return None

    if not isinstance(payload, dict):
        return None
    node_id = payload.get("nodeId")
    if not isinstance(node_id, str) or not node_id:
        return None
    path = payload.get("path")
    return ValueRef(node_id=node_id, path=path if isinstance(path, str) else "")


def is_ref_token(value: object) -> bool:
    return isinstance(value, str) and decode_ref(value) is not None


# ── Resolution pass ──────────────────────────────────────────────────────────

def lookup_expression(token: str) -> str:
    """Runtime expression for a token; "undefined" when the payload is malformed."""
    ref = decode_ref(token)
    if ref is None:
        logger.warning(f"Malformed value reference placeholder: {token[:48]!r}")
        return "undefined"
    return f"{LOOKUP_FUNCTION}({json.dumps(ref.node_id)}, {json.dumps(ref.path)})"


def resolve_placeholders(source: str) -> str:
    """
    Rewrite every quoted placeholder token in ``source`` into a lookup call.

    The quote characters around a matched token are consumed, so the literal
    becomes an expression.  Text without REF_PREFIX is returned unchanged.
    """
    if REF_PREFIX not in source:
        return source

    parts = []
    cursor = 0        # start of the not-yet-copied tail of ``source``
    search_from = 0
    replaced = 0

    while True:
        start = source.find(REF_PREFIX, search_from)
        if start == -1:
            break
        search_from = start + len(REF_PREFIX)

        # The opening quote must exist and must not belong to a previous match.
        if start - 1 < cursor:
            continue
        quote = source[start - 1]
        if quote not in _QUOTES:
            continue

        end = search_from
        while end < len(source) and source[end] in _ALPHABET:
            end += 1
        if end >= len(source) or source[end] != quote:
            continue

        parts.append(source[cursor:start - 1])
        parts.append(lookup_expression(source[start:end]))
        cursor = end + 1
        search_from = cursor
        replaced += 1

    parts.append(source[cursor:])
    logger.debug(f"Resolved {replaced} value reference placeholder(s)")
    return "".join(parts)


__all__ = [
    "LOOKUP_FUNCTION",
    "REF_PREFIX",
    "ValueRef",
    "decode_ref",
    "encode_ref",
    "is_ref_token",
    "lookup_expression",
    "resolve_placeholders",
]
