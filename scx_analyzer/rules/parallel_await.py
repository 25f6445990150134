"""Await waterfalls in server code and fetches that run on the client."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from tree_sitter import Node

from ..models import DiagnosticLevel, NodeKind, Suggestion
from ..parser import (
    FUNCTION_TYPES,
    callee_name,
    is_promise_all,
    named_children,
    parse_source,
    unwrap,
    walk,
)

PROMISE_ALL_RULE_ID = "server-promise-all"
HOIST_FETCH_RULE_ID = "client-hoist-fetch"

PROMISE_ALL_MESSAGE = "Consider wrapping independent awaits in Promise.all to run them in parallel."
HOIST_FETCH_MESSAGE = "Move this fetch call to a server component or loader to avoid fetching on the client."


def _awaited(node: Node) -> Optional[Node]:
    inner = named_children(node)
    return unwrap(inner[0]) if inner else None


def _enclosing_scope(node: Node) -> Optional[Node]:
    """Nearest enclosing function node, or None at module level."""
    parent = node.parent
    while parent is not None:
        if parent.type in FUNCTION_TYPES:
            return parent
        parent = parent.parent
    return None


def _inside_promise_all(node: Node) -> bool:
    parent = node.parent
    while parent is not None:
        if parent.type == "call_expression" and is_promise_all(parent):
            return True
        parent = parent.parent
    return False


def sequential_awaits(root: Node) -> Dict[Optional[Tuple[int, int]], List[Node]]:
    """Awaits grouped by enclosing function (keyed by byte range; None is the module).

    Awaits of ``Promise.all`` itself and awaits nested in its arguments are left out.
    """
    groups: Dict[Optional[Tuple[int, int]], List[Node]] = {}
    for node in walk(root):
        if node.type != "await_expression":
            continue
        target = _awaited(node)
        if target is not None and target.type == "call_expression" and is_promise_all(target):
            continue
        if _inside_promise_all(node):
            continue
        scope = _enclosing_scope(node)
        key = (scope.start_byte, scope.end_byte) if scope is not None else None
        groups.setdefault(key, []).append(node)
    return groups


def suggest_promise_all(file_name: str, source_text: str) -> List[Suggestion]:
    """One suggestion per file, at the second await of the earliest waterfall."""
    parsed = parse_source(source_text, file_name)
    candidates = [awaits[1] for awaits in sequential_awaits(parsed.root).values() if len(awaits) >= 2]
    if not candidates:
        return []
    target = min(candidates, key=lambda n: n.start_byte)
    return [Suggestion(PROMISE_ALL_RULE_ID, DiagnosticLevel.INFO, PROMISE_ALL_MESSAGE, parsed.location(target))]


def suggest_hoist_fetch(file_name: str, source_text: str) -> List[Suggestion]:
    parsed = parse_source(source_text, file_name)
    suggestions: List[Suggestion] = []
    for node in walk(parsed.root):
        if node.type != "await_expression":
            continue
        target = _awaited(node)
        if target is not None and target.type == "call_expression" and callee_name(target) == "fetch":
            suggestions.append(Suggestion(
                HOIST_FETCH_RULE_ID, DiagnosticLevel.WARN, HOIST_FETCH_MESSAGE, parsed.location(node)
            ))
    return suggestions


def collect_await_suggestions(file_name: str, source_text: str, kind: NodeKind) -> List[Suggestion]:
    if kind == NodeKind.CLIENT:
        return suggest_hoist_fetch(file_name, source_text)
    return suggest_promise_all(file_name, source_text)
