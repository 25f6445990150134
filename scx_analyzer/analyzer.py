"""Project analyzer: runs every pass over a built project and emits the Model."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .cache_metadata import collect_cache_metadata
from .classify import ClassifiedFile, classify_files
from .client_bundles import collect_client_bundles
from .config import IGNORED_DIRS, MODEL_VERSION, SUPPORTED_EXTENSIONS
from .config_manager import AnalyzerConfig, load_project_config
from .graph import build_graph
from .manifests import read_manifests
from .models import BuildInfo, Diagnostic, FileCacheMetadata, Model, RouteEntry, Suggestion, XNode
from .parser import export_declaration, node_text, parse_source, variable_declarators
from .rules import (
    analyze_serialization_boundary,
    collect_await_suggestions,
    detect_client_size_issues,
    detect_react_cache_opportunities,
    detect_suspense_boundary_issues,
)
from .rules.forbidden_imports import find_forbidden_imports
from .snapshots import merge_hydration, read_flight_snapshot, read_hydration_snapshot

logger = logging.getLogger(__name__)


@dataclass
class FileAnalysis:
    metadata: Optional[FileCacheMetadata] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)


def discover_source_files(project_root: Path, extra_ignored: Iterable[str] = ()) -> List[Path]:
    """Source files under *project_root*, skipping dependency, build and VCS dirs."""
    ignored = set(IGNORED_DIRS) | {Path(d).parts[0] for d in extra_ignored if d}
    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(project_root):
        dirnames[:] = sorted(d for d in dirnames if d not in ignored)
        for name in sorted(filenames):
            if name.endswith(SUPPORTED_EXTENSIONS) and not name.endswith(".d.ts"):
                found.append(Path(dirpath) / name)
    return found


def read_package_versions(project_root: Path) -> Tuple[str, Optional[str]]:
    """``(next version or "unknown", react version or None)`` from package.json."""
    try:
        pkg = json.loads((Path(project_root) / "package.json").read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("No usable package.json: %s", exc)
        return "unknown", None
    if not isinstance(pkg, dict):
        return "unknown", None

    def lookup(name: str) -> Optional[str]:
        for section in ("dependencies", "devDependencies", "peerDependencies"):
            deps = pkg.get(section)
            if isinstance(deps, dict) and isinstance(deps.get(name), str):
                return deps[name]
        return None

    return lookup("next") or "unknown", lookup("react")


def exported_component_names(source_text: str, file_name: str) -> Set[str]:
    """Capitalized names exported from a module."""
    names: Set[str] = set()
    for statement in parse_source(source_text, file_name).root.named_children:
        declaration = export_declaration(statement)
        if declaration is None:
            continue
        name = declaration.child_by_field_name("name")
        if name is not None:
            names.add(node_text(name))
        for declarator in variable_declarators(declaration):
            target = declarator.child_by_field_name("name")
            if target is not None and target.type == "identifier":
                names.add(node_text(target))
    return {n for n in names if n[:1].isupper()}


def client_component_names(files: Iterable[ClassifiedFile]) -> Set[str]:
    names: Set[str] = set()
    for entry in files:
        if not entry.is_client:
            continue
        names.add(Path(entry.relative_path).name.split(".")[0])
        try:
            names |= exported_component_names(entry.source, entry.relative_path)
        except Exception as exc:
            logger.warning("Failed to read exports of %s: %s", entry.relative_path, exc)
    return names


def analyze_file(
    entry: ClassifiedFile,
    client_names: Set[str],
    config: AnalyzerConfig,
    react_version: Optional[str] = None,
) -> FileAnalysis:
    """Cache metadata and single-file rules for one classified file."""
    path, source = entry.relative_path, entry.source
    result = FileAnalysis(metadata=collect_cache_metadata(source, path))

    if entry.is_client:
        result.diagnostics.extend(find_forbidden_imports(path, source, config.forbidden_modules))
    else:
        result.diagnostics.extend(analyze_serialization_boundary(path, source, client_names))
        for finding in detect_suspense_boundary_issues(path, source):
            bucket = result.diagnostics if isinstance(finding, Diagnostic) else result.suggestions
            bucket.append(finding)
        result.suggestions.extend(detect_react_cache_opportunities(path, source, react_version))

    result.suggestions.extend(collect_await_suggestions(path, source, entry.kind))
    result.suggestions.sort(key=lambda s: s.loc.start if s.loc is not None else 0)
    return result


def _safe_analyze(entry: ClassifiedFile, client_names: Set[str], config: AnalyzerConfig,
                  react_version: Optional[str]) -> FileAnalysis:
    try:
        return analyze_file(entry, client_names, config, react_version)
    except Exception as exc:
        logger.warning("Failed to analyze %s: %s", entry.relative_path, exc)
        return FileAnalysis()


def _propagate_route_cache(nodes: Dict[str, XNode], routes: List[RouteEntry]) -> Dict[str, XNode]:
    """Merge prerender tags and revalidate seconds into each route's root node."""
    merged = dict(nodes)
    for route in routes:
        node = merged.get(route.root_node_id)
        if node is None or route.cache is None:
            continue
        tags = sorted(set(node.tags) | set(route.cache.tags))
        cache = dict(node.cache or {})
        if route.cache.revalidate_seconds:
            cache["revalidateSeconds"] = sorted(
                set(cache.get("revalidateSeconds", [])) | set(route.cache.revalidate_seconds)
            )
        merged[route.root_node_id] = dataclasses.replace(node, tags=tags, cache=cache or None)
    return merged


def analyze_project(
    project_root: Path,
    dist_dir: Optional[str] = None,
    app_dir: Optional[str] = None,
    config: Optional[AnalyzerConfig] = None,
) -> Model:
    """Analyze a built project.

    Raises:
        ManifestNotFoundError: the project has not been built.
        MalformedArtifactError: a manifest or snapshot exists but cannot be parsed.
    """
    project_root = Path(project_root)
    config = (config or load_project_config(project_root)).with_overrides(dist_dir=dist_dir, app_dir=app_dir)

    manifests = read_manifests(project_root, config.dist_dir, max_workers=config.max_workers)
    framework_version, react_version = read_package_versions(project_root)
    react_version = config.react_version or react_version

    # Phase 1: read + classify
    sources = discover_source_files(project_root, extra_ignored=[config.dist_dir])
    classified = classify_files(project_root, sources, max_workers=config.max_workers)
    logger.info("Classified %d source files", len(classified))
    client_names = client_component_names(classified)

    # Phase 2: cache metadata + single-file rules
    with ThreadPoolExecutor(max_workers=max(1, config.max_workers)) as pool:
        analyses = list(pool.map(
            lambda e: _safe_analyze(e, client_names, config, react_version), classified
        ))
    per_file: Dict[str, FileAnalysis] = {e.relative_path: a for e, a in zip(classified, analyses)}

    bundles = collect_client_bundles(project_root, config.dist_dir, resolver=manifests.resolver)
    diagnostics_by_file: Dict[str, List[Diagnostic]] = {p: list(a.diagnostics) for p, a in per_file.items()}
    for diagnostic in detect_client_size_issues(bundles, threshold_bytes=config.client_size_threshold):
        diagnostics_by_file.setdefault(diagnostic.loc.file, []).append(diagnostic)

    graph = build_graph(
        classified,
        app_dir=config.app_dir,
        diagnostics_by_file=diagnostics_by_file,
        suggestions_by_file={p: a.suggestions for p, a in per_file.items()},
        client_bundles=bundles,
        cache_by_file={p: a.metadata for p, a in per_file.items() if a.metadata is not None},
    )

    routes: List[RouteEntry] = []
    for entry in graph.routes:
        asset = manifests.lookup(entry.route)
        if asset is not None:
            entry = dataclasses.replace(entry, chunks=asset.chunks, total_bytes=asset.total_bytes, cache=asset.cache)
        routes.append(entry)

    nodes = _propagate_route_cache(graph.nodes, routes)
    nodes = merge_hydration(nodes, routes, read_hydration_snapshot(project_root))
    samples = read_flight_snapshot(project_root)

    return Model(
        version=MODEL_VERSION,
        routes=routes,
        nodes=nodes,
        build=BuildInfo(
            framework_version=framework_version,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        ),
        flight=samples or None,
    )
