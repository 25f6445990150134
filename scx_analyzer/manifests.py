"""Build manifest reading and chunk size resolution.

Required artifacts (the project must have been built):

    <dist>/build-manifest.json                 {"pages": {...}, "app": {...}}
    <dist>/server/app-build-manifest.json      {"pages": {...}}
        (falls back to <dist>/app-build-manifest.json)

Optional artifacts:

    <dist>/build-manifest.json.__scx_sizes__   {chunk: [{"name", "size"}, ...]}
    <dist>/prerender-manifest.json             ISR seconds and cache tags per route
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import unquote

from .config import DEFAULT_DIST_DIR, DEFAULT_MAX_WORKERS
from .errors import MalformedArtifactError, ManifestNotFoundError
from .models import RouteCacheInfo
from .routes import normalize_route

logger = logging.getLogger(__name__)

BUILD_MANIFEST = "build-manifest.json"
APP_BUILD_MANIFEST = "app-build-manifest.json"
SIZE_SIDE_TABLE = "build-manifest.json.__scx_sizes__"
PRERENDER_MANIFEST = "prerender-manifest.json"
CACHE_TAGS_HEADER = "x-next-cache-tags"
RESERVED_TAG_PREFIX = "_N_"


@dataclass
class RouteAsset:
    route: str
    chunks: List[str] = field(default_factory=list)
    total_bytes: Optional[int] = None
    cache: Optional[RouteCacheInfo] = None


@dataclass
class ParsedManifests:
    routes: List[RouteAsset]
    asset_sizes: Dict[str, int] = field(default_factory=dict)
    resolver: Optional[ChunkSizeResolver] = None

    def lookup(self, route: str) -> Optional[RouteAsset]:
        for asset in self.routes:
            if asset.route == route:
                return asset
        return None


def read_json(path: Path, kind: str = "manifest") -> Any:
    """Parse a JSON artifact, naming *path* in the error when it is corrupt."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedArtifactError(path, str(exc), kind=kind) from exc


def load_asset_sizes(dist_path: Path) -> Dict[str, int]:
    """Per-chunk byte totals from the size side-table (empty when absent)."""
    path = dist_path / SIZE_SIDE_TABLE
    if not path.is_file():
        return {}
    raw = read_json(path, kind="size manifest")
    if not isinstance(raw, dict):
        return {}
    sizes: Dict[str, int] = {}
    for chunk, assets in raw.items():
        if not isinstance(assets, list):
            continue
        total = 0
        for asset in assets:
            if isinstance(asset, dict) and isinstance(asset.get("size"), (int, float)):
                total += int(asset["size"])
        sizes[chunk] = total
    return sizes


class ChunkSizeResolver:
    """Byte size of shipped chunks, memoized for the lifetime of one run.

    Lookup order: size side-table, the URL-decoded chunk path under the dist
    dir, then the raw chunk path. Unresolvable chunks count as zero.
    """

    def __init__(
        self,
        dist_path: Path,
        asset_sizes: Optional[Dict[str, int]] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.dist_path = Path(dist_path)
        self.asset_sizes = dict(asset_sizes or {})
        self.max_workers = max(1, max_workers)
        self._cache: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _stat(self, chunk: str) -> int:
        for candidate in (unquote(chunk), chunk):
            path = self.dist_path / candidate
            try:
                return path.stat().st_size
            except OSError:
                continue
        logger.debug("Could not resolve size of chunk %s", chunk)
        return 0

    def size_of(self, chunk: str) -> int:
        if chunk in self.asset_sizes:
            return self.asset_sizes[chunk]
        with self._lock:
            if chunk in self._cache:
                return self._cache[chunk]
        size = self._stat(chunk)
        with self._lock:
            self._cache[chunk] = size
        return size

    def resolve_many(self, chunks: Iterable[str]) -> Dict[str, int]:
        unique = sorted(set(chunks))
        if len(unique) <= 1:
            return {c: self.size_of(c) for c in unique}
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            return dict(zip(unique, pool.map(self.size_of, unique)))

    def total(self, chunks: Iterable[str]) -> int:
        return sum(self.resolve_many(chunks).values())


def split_cache_tags(value: Any) -> List[str]:
    if not isinstance(value, str):
        return []
    tags = {t.strip() for t in value.split(",")}
    return sorted(t for t in tags if t and not t.startswith(RESERVED_TAG_PREFIX))


def read_prerender_manifest(dist_path: Path) -> Dict[str, RouteCacheInfo]:
    path = dist_path / PRERENDER_MANIFEST
    if not path.is_file():
        return {}
    raw = read_json(path, kind="prerender manifest")
    routes = raw.get("routes") if isinstance(raw, dict) else None
    if not isinstance(routes, dict):
        return {}

    result: Dict[str, RouteCacheInfo] = {}
    for route, entry in routes.items():
        if not isinstance(entry, dict):
            continue
        seconds = entry.get("initialRevalidateSeconds")
        revalidate = [seconds] if isinstance(seconds, (int, float)) and not isinstance(seconds, bool) else []
        headers = entry.get("initialHeaders")
        tags = split_cache_tags(headers.get(CACHE_TAGS_HEADER)) if isinstance(headers, dict) else []
        if not revalidate and not tags:
            continue
        info = result.setdefault(normalize_route(route), RouteCacheInfo())
        info.revalidate_seconds = sorted(set(info.revalidate_seconds) | set(revalidate))
        info.tags = sorted(set(info.tags) | set(tags))
    return result


def _route_map(manifest: Any, key: str) -> Dict[str, List[str]]:
    value = manifest.get(key) if isinstance(manifest, dict) else None
    if not isinstance(value, dict):
        return {}
    return {route: [c for c in chunks if isinstance(c, str)] for route, chunks in value.items() if isinstance(chunks, list)}


def read_manifests(
    project_root: Path,
    dist_dir: str = DEFAULT_DIST_DIR,
    resolver: Optional[ChunkSizeResolver] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> ParsedManifests:
    """Merge the build manifests into one route -> chunks table.

    The returned resolver is the one used for route totals, so chunk sizes
    stay memoized for later lookups in the same run.

    Raises:
        ManifestNotFoundError: a required manifest is missing.
        MalformedArtifactError: a present manifest is not valid JSON.
    """
    dist_path = Path(project_root) / dist_dir
    build_path = dist_path / BUILD_MANIFEST
    app_candidates = [dist_path / "server" / APP_BUILD_MANIFEST, dist_path / APP_BUILD_MANIFEST]
    app_path = next((p for p in app_candidates if p.is_file()), None)

    if not build_path.is_file() or app_path is None:
        raise ManifestNotFoundError([build_path, *app_candidates], dist_dir=dist_dir)

    build_manifest = read_json(build_path)
    app_manifest = read_json(app_path)
    if resolver is None:
        resolver = ChunkSizeResolver(dist_path, load_asset_sizes(dist_path), max_workers=max_workers)
    cache_info = read_prerender_manifest(dist_path)

    merged: Dict[str, set] = {}
    for source in (
        _route_map(build_manifest, "pages"),
        _route_map(build_manifest, "app"),
        _route_map(app_manifest, "pages"),
    ):
        for route, chunks in source.items():
            merged.setdefault(normalize_route(route), set()).update(chunks)

    sizes = resolver.resolve_many(c for chunks in merged.values() for c in chunks)
    routes: List[RouteAsset] = []
    for route in sorted(merged):
        chunks = sorted(merged[route])
        total = sum(sizes.get(c, 0) for c in chunks)
        routes.append(RouteAsset(
            route=route,
            chunks=chunks,
            total_bytes=total if total > 0 else None,
            cache=cache_info.get(route),
        ))
    logger.debug("Read %d routes from %s", len(routes), dist_path)
    return ParsedManifests(routes=routes, asset_sizes=dict(resolver.asset_sizes), resolver=resolver)
