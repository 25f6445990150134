"""Tree-sitter parsing for TSX / TypeScript sources.

Every single-file pass (classification, cache metadata, rules, import
extraction) works on the concrete syntax tree produced here:

- Error-tolerant parsing (broken or incomplete syntax still yields a tree)
- One parser per thread per grammar, so files can be parsed concurrently
- Small helpers for literal extraction and scope-aware traversal
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, Iterator, List, Optional, Union

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

from .models import Location

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Extension <-> grammar mapping
# ---------------------------------------------------------------------------
GRAMMAR_FOR_EXTENSION: Dict[str, str] = {
    ".tsx": "tsx",
    ".jsx": "tsx",
    ".js": "tsx",
    ".mjs": "tsx",
    ".ts": "typescript",
    ".mts": "typescript",
}

FUNCTION_TYPES = frozenset({
    "function_declaration",
    "function_expression",
    "function",
    "arrow_function",
    "generator_function_declaration",
    "generator_function",
    "method_definition",
})

JSX_ELEMENT_TYPES = frozenset({"jsx_element", "jsx_self_closing_element", "jsx_fragment"})

# TS wrappers that do not change the runtime value of an expression
_TRANSPARENT_TYPES = frozenset({
    "parenthesized_expression",
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
})


@dataclass
class ParsedSource:
    """A parsed file together with the bytes its offsets refer to."""

    file_name: str
    source: str
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def location(self, node: Optional[Node]) -> Location:
        if node is None:
            return Location(self.file_name, 0, 0)
        return Location(self.file_name, node.start_byte, node.end_byte)


class SourceParser:
    """Thread-safe front end over the tree-sitter TypeScript grammars."""

    _GRAMMAR_FACTORIES: Dict[str, str] = {
        "tsx": "language_tsx",
        "typescript": "language_typescript",
    }

    def __init__(self) -> None:
        self._languages: Dict[str, Language] = {}
        self._lock = threading.Lock()
        self._local = threading.local()

    def _language(self, grammar: str) -> Language:
        with self._lock:
            language = self._languages.get(grammar)
            if language is None:
                factory = getattr(tree_sitter_typescript, self._GRAMMAR_FACTORIES[grammar])
                language = Language(factory())
                self._languages[grammar] = language
                logger.debug("Loaded tree-sitter grammar %s", grammar)
            return language

    def _parser(self, grammar: str) -> Parser:
        parsers = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = self._local.parsers = {}
        parser = parsers.get(grammar)
        if parser is None:
            parser = Parser(self._language(grammar))
            parsers[grammar] = parser
        return parser

    def parse(self, source: str, file_name: str = "inline.tsx") -> ParsedSource:
        grammar = grammar_for(file_name)
        tree = self._parser(grammar).parse(source.encode("utf-8"))
        return ParsedSource(file_name=file_name, source=source, tree=tree)


def grammar_for(file_name: str) -> str:
    return GRAMMAR_FOR_EXTENSION.get(PurePosixPath(file_name).suffix, "tsx")


_default_parser = SourceParser()


def parse_source(source: str, file_name: str = "inline.tsx") -> ParsedSource:
    """Parse *source* with the shared parser."""
    return _default_parser.parse(source, file_name)


# ===================================================================
# Node helpers
# ===================================================================

def node_text(node: Optional[Node]) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def named_children(node: Optional[Node]) -> List[Node]:
    """Named children without comment nodes."""
    if node is None:
        return []
    return [c for c in node.named_children if c.type != "comment"]


def unwrap(node: Optional[Node]) -> Optional[Node]:
    """Strip parentheses and type-only wrappers (``as``, ``satisfies``, ``!``)."""
    while node is not None and node.type in _TRANSPARENT_TYPES:
        inner = named_children(node)
        if not inner:
            return node
        node = inner[0]
    return node


def string_value(node: Optional[Node]) -> Optional[str]:
    """Value of a string literal or substitution-free template string."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type == "string":
        raw = node_text(node)
        return _unescape(raw[1:-1]) if len(raw) >= 2 else ""
    if node.type == "template_string":
        if any(c.type == "template_substitution" for c in node.named_children):
            return None
        raw = node_text(node)
        return _unescape(raw[1:-1]) if len(raw) >= 2 else ""
    return None


def _unescape(value: str) -> str:
    if "\\" not in value:
        return value
    out: List[str] = []
    chars = iter(value)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append({"n": "\n", "t": "\t", "r": "\r"}.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)


def number_value(node: Optional[Node]) -> Optional[Union[int, float]]:
    node = unwrap(node)
    if node is None or node.type != "number":
        return None
    raw = node_text(node).replace("_", "").rstrip("n")
    try:
        return int(raw, 0)
    except ValueError:
        pass
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value) if value.is_integer() else value


def boolean_value(node: Optional[Node]) -> Optional[bool]:
    node = unwrap(node)
    if node is None:
        return None
    if node.type == "true":
        return True
    if node.type == "false":
        return False
    return None


def is_function(node: Optional[Node]) -> bool:
    return node is not None and node.type in FUNCTION_TYPES


def is_async(fn: Node) -> bool:
    return any(child.type == "async" for child in fn.children)


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal in source order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def walk_scope(node: Node) -> Iterator[Node]:
    """Pre-order traversal that does not descend into nested functions.

    Nested function nodes themselves are not yielded.
    """
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        if current.type in FUNCTION_TYPES:
            continue
        yield current
        stack.extend(reversed(current.children))


def call_arguments(call: Node) -> List[Node]:
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return []
    return named_children(args)


def callee_name(call: Node) -> Optional[str]:
    """``fetch`` for ``fetch()`` and ``x.fetch()``."""
    func = unwrap(call.child_by_field_name("function"))
    if func is None:
        return None
    if func.type == "identifier":
        return node_text(func)
    if func.type == "member_expression":
        prop = func.child_by_field_name("property")
        return node_text(prop) if prop is not None else None
    return None


def is_promise_all(call: Node) -> bool:
    func = unwrap(call.child_by_field_name("function"))
    if func is None or func.type != "member_expression":
        return False
    obj = func.child_by_field_name("object")
    prop = func.child_by_field_name("property")
    return node_text(obj) == "Promise" and node_text(prop) in ("all", "allSettled")


def jsx_opening(element: Node) -> Optional[Node]:
    """The node carrying the tag name and attributes of a JSX element."""
    if element.type == "jsx_self_closing_element":
        return element
    if element.type == "jsx_element":
        opening = element.child_by_field_name("open_tag")
        if opening is not None:
            return opening
        for child in element.named_children:
            if child.type == "jsx_opening_element":
                return child
    return None


def jsx_tag_name(element: Node) -> str:
    opening = jsx_opening(element)
    if opening is None:
        return ""
    name = opening.child_by_field_name("name")
    if name is None:
        for child in opening.named_children:
            if child.type in ("identifier", "member_expression", "nested_identifier", "jsx_namespace_name"):
                name = child
                break
    return node_text(name)


def jsx_attributes(element: Node) -> List[Node]:
    opening = jsx_opening(element)
    if opening is None:
        return []
    return [c for c in opening.named_children if c.type in ("jsx_attribute", "jsx_expression")]


def export_declaration(statement: Node) -> Optional[Node]:
    if statement.type != "export_statement":
        return None
    return statement.child_by_field_name("declaration")


def variable_declarators(declaration: Optional[Node]) -> List[Node]:
    if declaration is None or declaration.type not in ("lexical_declaration", "variable_declaration"):
        return []
    return [c for c in declaration.named_children if c.type == "variable_declarator"]


def import_source(statement: Node) -> Optional[str]:
    if statement.type != "import_statement":
        return None
    return string_value(statement.child_by_field_name("source"))


def import_bindings(statement: Node) -> Dict[str, Any]:
    """Local bindings of an import statement.

    Returns ``{"named": {local: imported}, "namespace": [local], "default": local|None}``.
    """
    result: Dict[str, Any] = {"named": {}, "namespace": [], "default": None}
    clause = next((c for c in statement.named_children if c.type == "import_clause"), None)
    if clause is None:
        return result
    for part in clause.named_children:
        if part.type == "identifier":
            result["default"] = node_text(part)
        elif part.type == "namespace_import":
            ident = next((c for c in part.named_children if c.type == "identifier"), None)
            if ident is not None:
                result["namespace"].append(node_text(ident))
        elif part.type == "named_imports":
            for spec in part.named_children:
                if spec.type != "import_specifier":
                    continue
                name = spec.child_by_field_name("name")
                alias = spec.child_by_field_name("alias")
                imported = string_value(name) if name is not None and name.type == "string" else node_text(name)
                result["named"][node_text(alias) if alias is not None else imported] = imported
    return result


def dynamic_import_source(node: Optional[Node]) -> Optional[str]:
    """Module specifier of ``await import('x')`` / ``import('x')``, else None."""
    node = unwrap(node)
    if node is not None and node.type == "await_expression":
        inner = named_children(node)
        node = unwrap(inner[0]) if inner else None
    if node is None or node.type != "call_expression":
        return None
    func = node.child_by_field_name("function")
    if func is None or func.type != "import":
        return None
    args = call_arguments(node)
    return string_value(args[0]) if args else None
