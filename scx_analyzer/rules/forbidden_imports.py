"""Node-only module imports inside client components."""

from __future__ import annotations

from typing import FrozenSet, Iterable, List, Optional

from ..classify import ClassifiedFile, has_use_client_directive
from ..models import Diagnostic, DiagnosticLevel
from ..parser import call_arguments, node_text, parse_source, string_value, unwrap, walk

RULE_ID = "client-forbidden-import"

DEFAULT_FORBIDDEN_MODULES: FrozenSet[str] = frozenset({
    "fs",
    "path",
    "child_process",
    "os",
    "net",
    "tls",
    "http",
    "https",
    "worker_threads",
    "perf_hooks",
})


def normalize_module(name: str) -> str:
    return name[len("node:"):] if name.startswith("node:") else name


def is_forbidden(name: str, modules: FrozenSet[str]) -> bool:
    return name in modules or normalize_module(name) in modules


def find_forbidden_imports(
    file_name: str,
    source_text: str,
    forbidden_modules: Optional[Iterable[str]] = None,
) -> List[Diagnostic]:
    """Flag ``import ... from`` and ``require()`` of forbidden modules, regardless of kind."""
    modules = frozenset(forbidden_modules) if forbidden_modules is not None else DEFAULT_FORBIDDEN_MODULES
    parsed = parse_source(source_text, file_name)
    diagnostics: List[Diagnostic] = []

    for node in walk(parsed.root):
        specifier = None
        if node.type == "import_statement":
            specifier = node.child_by_field_name("source")
        elif node.type == "call_expression":
            func = unwrap(node.child_by_field_name("function"))
            args = call_arguments(node)
            if func is not None and func.type == "identifier" and node_text(func) == "require" and args:
                specifier = args[0]
        if specifier is None:
            continue
        name = string_value(specifier)
        if name and is_forbidden(name, modules):
            diagnostics.append(Diagnostic(
                RULE_ID,
                DiagnosticLevel.ERROR,
                f"Client components must not import '{name}'.",
                parsed.location(specifier),
            ))
    return diagnostics


def analyze_client_forbidden_imports(
    file_name: str,
    source_text: str,
    forbidden_modules: Optional[Iterable[str]] = None,
) -> List[Diagnostic]:
    """Forbidden imports of a single file; server components always pass."""
    if not has_use_client_directive(source_text, file_name):
        return []
    return find_forbidden_imports(file_name, source_text, forbidden_modules)


def collect_forbidden_import_diagnostics(
    files: Iterable[ClassifiedFile],
    forbidden_modules: Optional[Iterable[str]] = None,
) -> List[Diagnostic]:
    diagnostics: List[Diagnostic] = []
    for entry in files:
        if entry.is_client:
            diagnostics.extend(find_forbidden_imports(entry.relative_path, entry.source, forbidden_modules))
    return diagnostics
