"""Manual memoization that React's ``cache()`` can replace."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from tree_sitter import Node

from ..config import MIN_REACT_CACHE_MAJOR
from ..models import DiagnosticLevel, Suggestion
from ..parser import (
    ParsedSource,
    call_arguments,
    import_bindings,
    import_source,
    named_children,
    node_text,
    parse_source,
    string_value,
    unwrap,
    walk,
)

RULE_ID = "react19-cache-opportunity"

CACHE_MODULES = frozenset({"react", "react/cache"})

_VERSION_MAJOR = re.compile(r"^\s*(?:\^|~|>=|>|=)?\s*v?(\d+)")


def parse_major_version(version: Optional[str]) -> Optional[int]:
    if not version:
        return None
    match = _VERSION_MAJOR.match(version)
    return int(match.group(1)) if match else None


def version_supports_cache(version: Optional[str], minimum: int = MIN_REACT_CACHE_MAJOR) -> bool:
    """Absent or unparseable versions are assumed to be recent enough."""
    major = parse_major_version(version)
    return major is None or major >= minimum


def imports_cache(root: Node) -> bool:
    for statement in root.named_children:
        if import_source(statement) in CACHE_MODULES and "cache" in import_bindings(statement)["named"].values():
            return True
    return False


def _suggestion(parsed: ParsedSource, node: Node, message: str) -> Suggestion:
    return Suggestion(RULE_ID, DiagnosticLevel.INFO, message, parsed.location(node))


def _returns_function(body: Node) -> bool:
    for node in walk(body):
        if node.type == "return_statement":
            value = named_children(node)
            if value and unwrap(value[0]).type in ("arrow_function", "function_expression", "function"):
                return True
    return False


def _is_closure_cache(value: Node) -> bool:
    """``(() => { let cache; return async () => ... })()``"""
    if value.type != "call_expression" or call_arguments(value):
        return False
    callee = unwrap(value.child_by_field_name("function"))
    if callee is None or callee.type not in ("arrow_function", "function_expression", "function"):
        return False
    body = callee.child_by_field_name("body")
    return body is not None and body.type == "statement_block" and _returns_function(body)


def detect_react_cache_opportunities(
    file_name: str,
    source_text: str,
    react_version: Optional[str] = None,
) -> List[Suggestion]:
    if not version_supports_cache(react_version):
        return []
    parsed = parse_source(source_text, file_name)
    if imports_cache(parsed.root):
        return []

    suggestions: List[Suggestion] = []
    fetches: Dict[str, List[Node]] = {}

    for node in walk(parsed.root):
        if node.type == "variable_declarator":
            value = unwrap(node.child_by_field_name("value"))
            if value is None:
                continue
            if value.type == "new_expression":
                constructor = node_text(value.child_by_field_name("constructor"))
                if constructor in ("Map", "WeakMap"):
                    suggestions.append(_suggestion(
                        parsed,
                        node,
                        f"Manual caching with {constructor} detected. In React 19+, consider using cache() "
                        "from 'react' for automatic deduplication. Example: import { cache } from 'react'; "
                        "const getData = cache(async (id) => { ... });",
                    ))
            elif _is_closure_cache(value):
                suggestions.append(_suggestion(
                    parsed,
                    node,
                    "Closure-based caching pattern detected. In React 19+, use cache() from 'react' "
                    "for simpler and more reliable deduplication.",
                ))
        elif node.type == "call_expression":
            func = node.child_by_field_name("function")
            args = call_arguments(node)
            if func is not None and func.type == "identifier" and node_text(func) == "fetch" and args:
                url = string_value(args[0])
                if url is not None and unwrap(args[0]).type == "string":
                    fetches.setdefault(url, []).append(node)

    for url, calls in fetches.items():
        if len(calls) < 2:
            continue
        for call in calls:
            suggestions.append(_suggestion(
                parsed,
                call,
                f"Duplicate fetch to '{url}' detected ({len(calls)} calls). In React 19+, wrap fetch "
                "in cache() to automatically deduplicate requests.",
            ))

    suggestions.sort(key=lambda s: s.loc.start if s.loc is not None else 0)
    return suggestions
