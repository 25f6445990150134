"""Route segment config exports and the conflicts between them and the code.

Recognized exports (``export const <name> = <literal>``):

    dynamic          'auto' | 'force-dynamic' | 'force-static' | 'error'
    revalidate       number | false
    fetchCache       'auto' | 'default-cache' | 'only-cache' | 'force-cache'
                     | 'force-no-store' | 'default-no-store' | 'only-no-store'
    runtime          'nodejs' | 'edge'
    preferredRegion  string | string[]

Conflicts reported:

    force-static + dynamic API calls / ``.searchParams``        error
    force-dynamic + positive revalidate                        warn
    edge runtime + Node-only imports                           error
    fetchCache force-no-store + positive revalidate            warn
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from ..cache_metadata import find_dynamic_api_calls
from ..models import Diagnostic, DiagnosticLevel, Location, RouteSegmentConfig
from ..parser import (
    boolean_value,
    export_declaration,
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
from ..routes import is_route_file
from .forbidden_imports import DEFAULT_FORBIDDEN_MODULES, normalize_module

RULE_ID = "route-segment-config-conflict"

DYNAMIC_OPTIONS = frozenset({"auto", "force-dynamic", "force-static", "error"})
FETCH_CACHE_OPTIONS = frozenset({
    "auto",
    "default-cache",
    "only-cache",
    "force-cache",
    "force-no-store",
    "default-no-store",
    "only-no-store",
})
RUNTIME_OPTIONS = frozenset({"nodejs", "edge"})

NODE_ONLY_MODULES = DEFAULT_FORBIDDEN_MODULES | {"crypto", "buffer", "stream", "process"}


def parse_route_segment_config(source_text: str, file_name: str = "inline.tsx") -> Optional[RouteSegmentConfig]:
    """Read the exported segment options; None when the file exports none."""
    root = parse_source(source_text, file_name).root
    config = RouteSegmentConfig()
    found = False

    for statement in root.named_children:
        for declarator in variable_declarators(export_declaration(statement)):
            name_node = declarator.child_by_field_name("name")
            value = unwrap(declarator.child_by_field_name("value"))
            if name_node is None or name_node.type != "identifier" or value is None:
                continue
            name = node_text(name_node)
            span = (statement.start_byte, statement.end_byte)
            literal = string_value(value)

            if name == "dynamic" and literal in DYNAMIC_OPTIONS:
                config.dynamic = literal
            elif name == "revalidate" and number_value(value) is not None:
                config.revalidate = number_value(value)
            elif name == "revalidate" and boolean_value(value) is False:
                config.revalidate = False
            elif name == "fetchCache" and literal in FETCH_CACHE_OPTIONS:
                config.fetch_cache = literal
            elif name == "runtime" and literal in RUNTIME_OPTIONS:
                config.runtime = literal
            elif name == "preferredRegion" and literal is not None:
                config.preferred_region = literal
            elif name == "preferredRegion" and value.type == "array":
                regions = [r for r in (string_value(e) for e in named_children(value)) if r is not None]
                if not regions:
                    continue
                config.preferred_region = regions
            else:
                continue
            config.positions[name] = span
            found = True

    return config if found else None


def _positive_revalidate(config: RouteSegmentConfig) -> bool:
    value = config.revalidate
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _location(file_name: str, config: RouteSegmentConfig, *options: str) -> Location:
    for option in options:
        span: Optional[Tuple[int, int]] = config.positions.get(option)
        if span is not None:
            return Location(file_name, span[0], span[1])
    return Location(file_name, 0, 0)


def detect_config_conflicts(
    file_name: str,
    source_text: str,
    config: RouteSegmentConfig,
) -> List[Diagnostic]:
    root = parse_source(source_text, file_name).root
    diagnostics: List[Diagnostic] = []

    if config.dynamic == "force-static":
        used = find_dynamic_api_calls(root)
        if "searchParams" not in used and any(
            node.type == "member_expression" and node_text(node.child_by_field_name("property")) == "searchParams"
            for node in walk(root)
        ):
            used.append("searchParams")
        if used:
            diagnostics.append(Diagnostic(
                RULE_ID,
                DiagnosticLevel.ERROR,
                "Route config 'dynamic = \"force-static\"' conflicts with usage of dynamic APIs "
                f"({', '.join(used)}). Remove force-static or avoid dynamic APIs.",
                _location(file_name, config, "dynamic"),
            ))

    if config.dynamic == "force-dynamic" and _positive_revalidate(config):
        diagnostics.append(Diagnostic(
            RULE_ID,
            DiagnosticLevel.WARN,
            f"Route config 'dynamic = \"force-dynamic\"' conflicts with 'revalidate = {config.revalidate}'. "
            "ISR (revalidate) requires static or auto dynamic mode.",
            _location(file_name, config, "dynamic", "revalidate"),
        ))

    if config.runtime == "edge":
        node_imports = [
            spec for spec in (import_source(s) for s in root.named_children)
            if spec and normalize_module(spec) in NODE_ONLY_MODULES
        ]
        if node_imports:
            diagnostics.append(Diagnostic(
                RULE_ID,
                DiagnosticLevel.ERROR,
                "Route config 'runtime = \"edge\"' conflicts with usage of Node.js-only APIs "
                f"({', '.join(node_imports)}). Use nodejs runtime or remove Node.js imports.",
                _location(file_name, config, "runtime"),
            ))

    if config.fetch_cache == "force-no-store" and _positive_revalidate(config):
        diagnostics.append(Diagnostic(
            RULE_ID,
            DiagnosticLevel.WARN,
            f"Route config 'fetchCache = \"force-no-store\"' conflicts with 'revalidate = {config.revalidate}'. "
            "force-no-store disables caching, making revalidation ineffective.",
            _location(file_name, config, "fetchCache", "revalidate"),
        ))

    return diagnostics


def analyze_route_segment_config(
    file_name: str,
    source_text: str,
) -> Tuple[Optional[RouteSegmentConfig], List[Diagnostic]]:
    """Config and conflicts of a route file; non-route files yield ``(None, [])``."""
    if not is_route_file(file_name):
        return None, []
    config = parse_route_segment_config(source_text, file_name)
    if config is None:
        return None, []
    return config, detect_config_conflicts(file_name, source_text, config)
