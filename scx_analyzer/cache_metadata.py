"""Extract caching and revalidation metadata from a single source file."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Set, Tuple

from tree_sitter import Node

from .models import FileCacheMetadata
from .parser import (
    boolean_value,
    call_arguments,
    callee_name,
    dynamic_import_source,
    export_declaration,
    import_bindings,
    import_source,
    named_children,
    node_text,
    number_value,
    parse_source,
    string_value,
    unwrap,
    variable_declarators,
    walk,
)

CACHE_MODES = frozenset({"force-cache", "no-store"})
DYNAMIC_VALUES = frozenset({"auto", "force-dynamic", "force-static", "error"})
RESERVED_TAG_PREFIX = "_N_"

DYNAMIC_API_MODULES = frozenset({"next/headers", "next/cache"})
DYNAMIC_API_NAMES = frozenset({"headers", "cookies", "draftMode", "noStore", "unstable_noStore"})

_TAG_SEPARATOR = re.compile(r"[,\n]")


def property_key(pair: Node) -> Optional[str]:
    """Static key of an object ``pair`` (identifier or string key)."""
    key = pair.child_by_field_name("key")
    if key is None:
        return None
    if key.type in ("property_identifier", "identifier"):
        return node_text(key)
    return string_value(key)


def collect_tags(node: Optional[Node], into: Set[str]) -> None:
    node = unwrap(node)
    if node is None:
        return
    if node.type == "array":
        for element in named_children(node):
            value = string_value(element)
            if value and not value.startswith(RESERVED_TAG_PREFIX):
                into.add(value)
        return
    literal = string_value(node)
    if literal:
        for entry in _TAG_SEPARATOR.split(literal):
            entry = entry.strip()
            if entry and not entry.startswith(RESERVED_TAG_PREFIX):
                into.add(entry)


def _collect_fetch_options(obj: Node, metadata: FileCacheMetadata) -> None:
    for pair in obj.named_children:
        if pair.type != "pair":
            continue
        name = property_key(pair)
        value = unwrap(pair.child_by_field_name("value"))
        if name is None or value is None:
            continue
        if name == "cache":
            literal = string_value(value)
            if literal in CACHE_MODES:
                metadata.cache_modes.add(literal)
        elif name == "revalidate":
            if boolean_value(value) is False:
                metadata.has_revalidate_false = True
            else:
                seconds = number_value(value)
                if seconds is not None:
                    metadata.revalidate_seconds.add(seconds)
        elif name in ("next", "headers"):
            if value.type == "object":
                _collect_fetch_options(value, metadata)
        elif name in ("tags", "x-next-cache-tags"):
            collect_tags(value, metadata.tags)


def _collect_exported_config(statement: Node, metadata: FileCacheMetadata) -> None:
    for declarator in variable_declarators(export_declaration(statement)):
        name = declarator.child_by_field_name("name")
        value = declarator.child_by_field_name("value")
        if name is None or name.type != "identifier" or value is None:
            continue
        key = node_text(name)
        if key == "revalidate":
            if boolean_value(value) is False:
                metadata.has_revalidate_false = True
            else:
                seconds = number_value(value)
                if seconds is not None:
                    metadata.revalidate_seconds.add(seconds)
        elif key == "dynamic":
            literal = string_value(value)
            if literal in DYNAMIC_VALUES:
                metadata.exported_dynamic = literal
        elif key == "experimental_ppr":
            if boolean_value(value) is True:
                metadata.experimental_ppr = True


class _DynamicApiTracker:
    """Local names that reach a dynamic request API, resolved after the walk."""

    def __init__(self) -> None:
        # local binding -> API name it was imported as
        self.direct: Dict[str, str] = {}
        self.namespaces: Set[str] = set()
        # functions and variables the file declares itself
        self.local_names: Set[str] = set()
        self.direct_calls: List[Tuple[int, str]] = []
        self.member_calls: List[Tuple[int, str, str]] = []
        self.inline_calls: List[Tuple[int, str]] = []

    def visit(self, node: Node) -> None:
        if node.type == "import_statement":
            self.add_import(node)
        elif node.type == "variable_declarator":
            self.add_declarator(node)
        elif node.type == "function_declaration":
            name = node.child_by_field_name("name")
            if name is not None:
                self.local_names.add(node_text(name))
        elif node.type == "call_expression":
            self.add_call(node)

    def add_import(self, statement: Node) -> None:
        bindings = import_bindings(statement)
        if import_source(statement) not in DYNAMIC_API_MODULES:
            self.local_names.update(bindings["named"])
            if bindings["default"]:
                self.local_names.add(bindings["default"])
            return
        for local, imported in bindings["named"].items():
            if imported in DYNAMIC_API_NAMES:
                self.direct[local] = imported
        self.namespaces.update(bindings["namespace"])

    def add_declarator(self, declarator: Node) -> None:
        target = declarator.child_by_field_name("name")
        if target is None:
            return
        if dynamic_import_source(declarator.child_by_field_name("value")) not in DYNAMIC_API_MODULES:
            if target.type == "identifier":
                self.local_names.add(node_text(target))
            return
        if target.type == "identifier":
            self.namespaces.add(node_text(target))
        elif target.type == "object_pattern":
            for prop in target.named_children:
                if prop.type == "shorthand_property_identifier_pattern":
                    if node_text(prop) in DYNAMIC_API_NAMES:
                        self.direct[node_text(prop)] = node_text(prop)
                elif prop.type == "pair_pattern":
                    key = node_text(prop.child_by_field_name("key"))
                    alias = prop.child_by_field_name("value")
                    if key in DYNAMIC_API_NAMES and alias is not None and alias.type == "identifier":
                        self.direct[node_text(alias)] = key

    def add_call(self, call: Node) -> None:
        func = unwrap(call.child_by_field_name("function"))
        if func is None:
            return
        if func.type == "identifier":
            self.direct_calls.append((call.start_byte, node_text(func)))
        elif func.type == "member_expression":
            obj = unwrap(func.child_by_field_name("object"))
            prop = node_text(func.child_by_field_name("property"))
            if obj is None:
                return
            if obj.type == "identifier":
                self.member_calls.append((call.start_byte, node_text(obj), prop))
            elif dynamic_import_source(obj) in DYNAMIC_API_MODULES and prop in DYNAMIC_API_NAMES:
                self.inline_calls.append((call.start_byte, prop))

    def used_apis(self) -> List[str]:
        """API names reached by a call, unique, in order of first call."""
        hits: List[Tuple[int, str]] = []
        for pos, name in self.direct_calls:
            if name in self.direct:
                hits.append((pos, self.direct[name]))
            elif name in DYNAMIC_API_NAMES and name not in self.local_names:
                hits.append((pos, name))
        hits += [
            (pos, prop) for pos, ns, prop in self.member_calls
            if ns in self.namespaces and prop in DYNAMIC_API_NAMES
        ]
        hits += self.inline_calls
        names: List[str] = []
        for _, name in sorted(hits):
            if name not in names:
                names.append(name)
        return names


def find_dynamic_api_calls(root: Node) -> List[str]:
    """Dynamic request APIs (``cookies``, ``headers``, ...) called anywhere under *root*.

    Calls count through ``as`` aliases, namespace imports and
    ``import('next/headers')`` bindings. A bare call such as ``cookies()``
    counts unless the file declares that name itself. Names are reported as
    imported.
    """
    tracker = _DynamicApiTracker()
    for node in walk(root):
        tracker.visit(node)
    return tracker.used_apis()


def collect_cache_metadata(source_text: str, file_name: str = "inline.tsx") -> FileCacheMetadata:
    metadata = FileCacheMetadata()
    tracker = _DynamicApiTracker()
    root = parse_source(source_text, file_name).root

    for node in walk(root):
        tracker.visit(node)
        if node.type == "export_statement":
            _collect_exported_config(node, metadata)
        elif node.type == "call_expression":
            name = callee_name(node)
            args = call_arguments(node)
            if name == "fetch":
                options = unwrap(args[1]) if len(args) >= 2 else None
                if options is not None and options.type == "object":
                    _collect_fetch_options(options, metadata)
            elif name == "revalidateTag" and args:
                tag = string_value(args[0])
                if tag:
                    metadata.revalidate_tag_calls.add(tag)
            elif name == "revalidatePath" and args:
                path = string_value(args[0])
                if path:
                    metadata.revalidate_path_calls.add(path)

    metadata.uses_dynamic_apis = bool(tracker.used_apis())
    return metadata
