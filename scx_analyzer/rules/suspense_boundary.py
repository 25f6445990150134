"""Async server components rendered without a Suspense boundary."""

from __future__ import annotations

from typing import List, Optional, Union

from tree_sitter import Node

from ..classify import has_use_client_directive
from ..models import Diagnostic, DiagnosticLevel, Suggestion
from ..parser import (
    JSX_ELEMENT_TYPES,
    ParsedSource,
    export_declaration,
    is_async,
    is_function,
    jsx_tag_name,
    named_children,
    parse_source,
    unwrap,
    variable_declarators,
    walk_scope,
)

MISSING_RULE_ID = "suspense-boundary-missing"
OPPORTUNITY_RULE_ID = "suspense-boundary-opportunity"

SUSPENSE_TAGS = frozenset({"Suspense", "React.Suspense"})


def exported_components(root: Node) -> List[Node]:
    """Function nodes exported from the module, in source order."""
    components: List[Node] = []
    for statement in root.named_children:
        if statement.type != "export_statement":
            continue
        declaration = export_declaration(statement)
        if is_function(declaration):
            components.append(declaration)
            continue
        for declarator in variable_declarators(declaration):
            value = unwrap(declarator.child_by_field_name("value"))
            if value is not None and value.type in ("arrow_function", "function_expression", "function"):
                components.append(value)
        value = unwrap(statement.child_by_field_name("value"))
        if is_function(value):
            components.append(value)
    return components


def count_awaits(fn: Node) -> int:
    return sum(1 for n in walk_scope(fn) if n.type == "await_expression")


def has_suspense_boundary(fn: Node) -> bool:
    for node in walk_scope(fn):
        if node.type in ("jsx_element", "jsx_self_closing_element") and jsx_tag_name(node) in SUSPENSE_TAGS:
            return True
    return False


def _is_jsx(node: Optional[Node]) -> bool:
    return node is not None and node.type in JSX_ELEMENT_TYPES


def jsx_return_root(fn: Node) -> Optional[Node]:
    """JSX root of the component's first return expression (parentheses stripped)."""
    body = fn.child_by_field_name("body")
    if body is None:
        return None
    if body.type != "statement_block":
        expression = unwrap(body)
        return expression if _is_jsx(expression) else None
    for node in walk_scope(body):
        if node.type == "return_statement":
            value = named_children(node)
            expression = unwrap(value[0]) if value else None
            if _is_jsx(expression):
                return expression
    return None


def detect_suspense_boundary_issues(
    file_name: str,
    source_text: str,
) -> List[Union[Diagnostic, Suggestion]]:
    """Missing-boundary warnings (and parallel-boundary hints) for async server components."""
    if has_use_client_directive(source_text, file_name):
        return []
    parsed: ParsedSource = parse_source(source_text, file_name)
    findings: List[Union[Diagnostic, Suggestion]] = []

    for component in exported_components(parsed.root):
        awaits = count_awaits(component)
        if not is_async(component) and awaits == 0:
            continue
        if awaits == 0 or has_suspense_boundary(component):
            continue

        target = jsx_return_root(component) or component.child_by_field_name("body") or component
        loc = parsed.location(target)
        plural = "s" if awaits > 1 else ""
        findings.append(Diagnostic(
            MISSING_RULE_ID,
            DiagnosticLevel.WARN,
            f"Async server component with {awaits} await expression{plural} should be wrapped "
            "in a Suspense boundary for optimal streaming.",
            loc,
        ))
        if awaits > 1:
            findings.append(Suggestion(
                OPPORTUNITY_RULE_ID,
                DiagnosticLevel.INFO,
                f"Consider splitting {awaits} await expressions into parallel Suspense boundaries "
                "for better streaming performance.",
                loc,
            ))
    return findings
