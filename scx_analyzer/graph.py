"""Module dependency graph and route nodes."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .classify import ClassifiedFile
from .client_bundles import ClientComponentBundle, attribute_bytes
from .config import DEFAULT_APP_DIR, SUPPORTED_EXTENSIONS
from .models import Diagnostic, FileCacheMetadata, NodeKind, RouteEntry, RouteSegmentConfig, Suggestion, XNode
from .parser import import_source, parse_source
from .routes import derive_route_from_app_file, is_page_file, is_route_file, to_posix
from .rules.route_segment_config import analyze_route_segment_config

logger = logging.getLogger(__name__)


@dataclass
class GraphResult:
    routes: List[RouteEntry] = field(default_factory=list)
    nodes: Dict[str, XNode] = field(default_factory=dict)


def module_id(file_path: str) -> str:
    return f"module:{to_posix(file_path)}"


def route_id(route: str) -> str:
    return f"route:{route}"


def extract_import_specifiers(source_text: str, file_name: str = "inline.tsx") -> List[str]:
    """Module specifiers of the file's static ``import`` statements, in source order."""
    root = parse_source(source_text, file_name).root
    specifiers = []
    for statement in root.named_children:
        spec = import_source(statement)
        if spec:
            specifiers.append(spec)
    return specifiers


def resolve_import(from_file: str, specifier: str, available: Set[str]) -> Optional[str]:
    """Resolve a relative specifier to a known project-relative file.

    Bare (package) specifiers and anything that does not land on a known
    file resolve to None.
    """
    if not specifier.startswith("."):
        return None
    base = posixpath.normpath(posixpath.join(posixpath.dirname(to_posix(from_file)), specifier))
    if specifier.endswith(SUPPORTED_EXTENSIONS):
        candidates = [base]
    else:
        candidates = [base + ext for ext in SUPPORTED_EXTENSIONS]
        candidates += [posixpath.join(base, "index" + ext) for ext in SUPPORTED_EXTENSIONS]
    for candidate in candidates:
        if candidate in available:
            return candidate
    return None


def _module_node(
    entry: ClassifiedFile,
    children: List[str],
    diagnostics: Sequence[Diagnostic],
    suggestions: Sequence[Suggestion],
    bundle_bytes: int,
    metadata: Optional[FileCacheMetadata],
) -> XNode:
    return XNode(
        id=module_id(entry.relative_path),
        kind=entry.kind,
        file=entry.relative_path,
        name=posixpath.basename(entry.relative_path),
        children=children,
        diagnostics=list(diagnostics),
        suggestions=list(suggestions),
        bytes=bundle_bytes if bundle_bytes > 0 else None,
        tags=sorted(metadata.tags) if metadata is not None else [],
        cache=metadata.cache_summary() if metadata is not None else None,
        mutations=metadata.mutation_summary() if metadata is not None else None,
    )


def build_graph(
    classified_files: Iterable[ClassifiedFile],
    app_dir: str = DEFAULT_APP_DIR,
    diagnostics_by_file: Optional[Dict[str, List[Diagnostic]]] = None,
    suggestions_by_file: Optional[Dict[str, List[Suggestion]]] = None,
    client_bundles: Optional[Iterable[ClientComponentBundle]] = None,
    cache_by_file: Optional[Dict[str, FileCacheMetadata]] = None,
) -> GraphResult:
    files = sorted(classified_files, key=lambda f: f.relative_path)
    available = {f.relative_path for f in files}
    diagnostics_by_file = diagnostics_by_file or {}
    suggestions_by_file = suggestions_by_file or {}
    cache_by_file = cache_by_file or {}
    bundle_lookup = attribute_bytes(client_bundles)

    nodes: Dict[str, XNode] = {}
    route_children: Dict[str, Set[str]] = {}
    route_diagnostics: Dict[str, List[Diagnostic]] = {}
    segment_configs: Dict[str, RouteSegmentConfig] = {}

    for entry in files:
        path = entry.relative_path
        children: Set[str] = set()
        for spec in extract_import_specifiers(entry.source, path):
            resolved = resolve_import(path, spec, available)
            if resolved is not None:
                children.add(module_id(resolved))

        diagnostics = list(diagnostics_by_file.get(path, []))
        config: Optional[RouteSegmentConfig] = None
        if is_route_file(path):
            try:
                config, conflicts = analyze_route_segment_config(path, entry.source)
            except Exception as exc:
                logger.warning("Failed to read route segment config of %s: %s", path, exc)
                config, conflicts = None, []
            diagnostics.extend(conflicts)
        else:
            conflicts = []

        bundle = bundle_lookup.get(path)
        nodes[module_id(path)] = _module_node(
            entry,
            sorted(children),
            diagnostics,
            suggestions_by_file.get(path, []),
            bundle.total_bytes if bundle is not None else 0,
            cache_by_file.get(path),
        )

        route = derive_route_from_app_file(app_dir, path)
        if route is None or not is_page_file(path):
            continue
        route_children.setdefault(route, set()).add(module_id(path))
        route_diagnostics.setdefault(route, []).extend(conflicts)
        if config is not None:
            segment_configs[route] = config

    routes: List[RouteEntry] = []
    for route in sorted(route_children):
        rid = route_id(route)
        nodes[rid] = XNode(
            id=rid,
            kind=NodeKind.ROUTE,
            name=route,
            children=sorted(route_children[route]),
            diagnostics=route_diagnostics.get(route, []),
        )
        routes.append(RouteEntry(route=route, root_node_id=rid, segment_config=segment_configs.get(route)))

    return GraphResult(routes=routes, nodes=nodes)
