"""Non-serializable props passed from server components to client components.

Props crossing the server/client boundary must be JSON-serializable. The
rule flags, for every JSX element whose tag is a known client component:

- arrow functions and function expressions
- ``new Date()``, ``new Map()``, ``new Set()``, ``new Promise()``
- any other ``new SomeClass()``
- ``Symbol(...)``
- JSX elements passed through a prop other than ``children``

Identifiers are resolved one hop through the variable and function
declarations of the same file. Spread props, destructured bindings,
imports and parameters are not followed.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from tree_sitter import Node

from ..classify import has_use_client_directive
from ..models import Diagnostic, DiagnosticLevel
from ..parser import (
    JSX_ELEMENT_TYPES,
    ParsedSource,
    jsx_attributes,
    jsx_tag_name,
    named_children,
    node_text,
    parse_source,
    unwrap,
    walk,
)

RULE_ID = "server-client-serialization-violation"

FUNCTION = "function"
ARROW_FUNCTION = "arrow function"
DATE = "Date instance"
MAP = "Map instance"
SET = "Set instance"
PROMISE = "Promise"
SYMBOL = "Symbol"
CLASS_INSTANCE = "class instance"
REACT_ELEMENT = "React element"

_BUILTIN_CONSTRUCTORS = {"Date": DATE, "Map": MAP, "Set": SET, "Promise": PROMISE}

REMEDIATION: Dict[str, str] = {
    FUNCTION: "Consider using Server Actions for mutations, or move the function to the client component.",
    ARROW_FUNCTION: "Consider using Server Actions for mutations, or move the function to the client component.",
    DATE: "Serialize the Date as an ISO string (toISOString()) and parse it in the client component.",
    MAP: "Convert to an array or plain object before passing to the client.",
    SET: "Convert to an array or plain object before passing to the client.",
    CLASS_INSTANCE: "Extract serializable data from the class instance into a plain object.",
    PROMISE: "Await the Promise in the server component before passing the resolved value.",
    SYMBOL: "Pass a string key instead of a Symbol.",
    REACT_ELEMENT: "Pass the element as children, or render it inside the client component.",
}


def detect_non_serializable(node: Optional[Node]) -> Optional[str]:
    """Describe why *node* cannot be serialized, or None if it can."""
    node = unwrap(node)
    if node is None:
        return None
    kind = node.type
    if kind == "arrow_function":
        return ARROW_FUNCTION
    if kind in ("function_expression", "function", "generator_function"):
        return FUNCTION
    if kind == "new_expression":
        constructor = node.child_by_field_name("constructor")
        if constructor is not None and constructor.type == "identifier":
            return _BUILTIN_CONSTRUCTORS.get(node_text(constructor), CLASS_INSTANCE)
        return None
    if kind == "call_expression":
        func = node.child_by_field_name("function")
        if func is not None and func.type == "identifier" and node_text(func) == "Symbol":
            return SYMBOL
        return None
    if kind in JSX_ELEMENT_TYPES:
        return REACT_ELEMENT
    return None


def build_symbol_table(root: Node) -> Dict[str, Optional[str]]:
    """Map every declared name in the file to its non-serializable kind (or None).

    Later declarations of the same name replace earlier ones.
    """
    table: Dict[str, Optional[str]] = {}
    for node in walk(root):
        if node.type == "variable_declarator":
            name = node.child_by_field_name("name")
            value = node.child_by_field_name("value")
            if name is not None and name.type == "identifier" and value is not None:
                table[node_text(name)] = detect_non_serializable(value)
        elif node.type in ("function_declaration", "generator_function_declaration"):
            name = node.child_by_field_name("name")
            if name is not None:
                table[node_text(name)] = FUNCTION
    return table


def _resolve(expression: Node, table: Dict[str, Optional[str]]) -> Optional[str]:
    target = unwrap(expression)
    if target is not None and target.type == "identifier":
        name = node_text(target)
        if name in table:
            return table[name]
    return detect_non_serializable(target)


def _make_diagnostic(parsed: ParsedSource, node: Node, prop: str, kind: str, component: str) -> Diagnostic:
    remediation = REMEDIATION.get(kind)
    message = (
        f"Non-serializable prop '{prop}' ({kind}) passed to client component '{component}'. "
        "Props must be JSON-serializable."
    )
    if remediation:
        message = f"{message} {remediation}"
    return Diagnostic(RULE_ID, DiagnosticLevel.ERROR, message, parsed.location(node))


def analyze_serialization_boundary(
    file_name: str,
    source_text: str,
    client_components: Iterable[str] = (),
) -> List[Diagnostic]:
    if has_use_client_directive(source_text, file_name):
        return []
    components = set(client_components)
    if not components:
        return []

    parsed = parse_source(source_text, file_name)
    table = build_symbol_table(parsed.root)
    diagnostics: List[Diagnostic] = []

    for element in walk(parsed.root):
        if element.type not in ("jsx_element", "jsx_self_closing_element"):
            continue
        component = jsx_tag_name(element)
        if component not in components:
            continue
        for attribute in jsx_attributes(element):
            if attribute.type != "jsx_attribute":
                continue  # spread props
            parts = named_children(attribute)
            if len(parts) < 2:
                continue
            prop = node_text(parts[0])
            if prop == "children":
                continue
            value = parts[1]
            if value.type == "jsx_expression":
                inner = named_children(value)
                if not inner or inner[0].type == "spread_element":
                    continue
                value = inner[0]
            kind = _resolve(value, table)
            if kind:
                diagnostics.append(_make_diagnostic(parsed, value, prop, kind, component))

    return diagnostics
