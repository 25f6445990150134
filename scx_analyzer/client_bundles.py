"""Attribute shipped client chunks and bytes to client component files.

The framework writes one ``*client-reference-manifest.js`` per route. Each
is a generated snippet of the form::

    globalThis.__RSC_MANIFEST=(globalThis.__RSC_MANIFEST||{});
    globalThis.__RSC_MANIFEST["/page"]={"clientModules":{"/abs/app/Button.tsx":{"chunks":[...]}}};

Only the JSON object literal on the right of each keyed assignment is read.
The snippet is never executed.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import DEFAULT_DIST_DIR
from .errors import MalformedArtifactError
from .manifests import ChunkSizeResolver, load_asset_sizes
from .routes import to_posix

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = "client-reference-manifest.js"

_ASSIGNMENT = re.compile(
    r"""(?:globalThis|self)\s*\.\s*__RSC_MANIFEST\s*\[\s*(?P<q>["'])(?P<key>.*?)(?P=q)\s*\]\s*=\s*"""
)
_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class ClientComponentBundle:
    file: str
    chunks: List[str]
    total_bytes: int


@dataclass
class NodeBundleBytes:
    total_bytes: int = 0
    chunks: List[str] = field(default_factory=list)


def parse_client_reference_manifest(content: str, path: Optional[Path] = None) -> Dict[str, Any]:
    """Return ``{entry key: record}`` for every manifest assignment in *content*."""
    records: Dict[str, Any] = {}
    for match in _ASSIGNMENT.finditer(content):
        try:
            value, _ = _decoder.raw_decode(content, match.end())
        except ValueError as exc:
            raise MalformedArtifactError(
                path or Path("<client reference manifest>"), str(exc), kind="client reference manifest"
            ) from exc
        if isinstance(value, dict):
            records[match.group("key")] = value
    return records


def find_client_manifests(project_root: Path, dist_dir: str = DEFAULT_DIST_DIR) -> List[Path]:
    dist_path = Path(project_root) / dist_dir
    for base in (dist_path / "server", dist_path):
        if not base.is_dir():
            continue
        found = sorted(p for p in base.rglob(f"*{MANIFEST_SUFFIX}") if p.is_file())
        if found:
            return found
    return []


def _project_relative(module_path: str, roots: Iterable[str]) -> Optional[str]:
    module_path = to_posix(module_path.split("#", 1)[0])
    for root in roots:
        if module_path.startswith(root + "/"):
            return module_path[len(root) + 1:]
    return None


def collect_client_bundles(
    project_root: Path,
    dist_dir: str = DEFAULT_DIST_DIR,
    resolver: Optional[ChunkSizeResolver] = None,
) -> List[ClientComponentBundle]:
    """Chunks and byte totals per client component file, sorted by file."""
    project_root = Path(project_root)
    roots = {to_posix(str(project_root)).rstrip("/"), to_posix(str(project_root.resolve())).rstrip("/")}
    dist_path = project_root / dist_dir
    resolver = resolver or ChunkSizeResolver(dist_path, load_asset_sizes(dist_path))

    component_chunks: Dict[str, set] = {}
    for manifest_path in find_client_manifests(project_root, dist_dir):
        content = manifest_path.read_text(encoding="utf-8")
        for entry in parse_client_reference_manifest(content, manifest_path).values():
            modules = entry.get("clientModules")
            if not isinstance(modules, dict):
                continue
            for module_path, meta in modules.items():
                relative = _project_relative(module_path, roots)
                if relative is None:
                    continue
                chunks = meta.get("chunks") if isinstance(meta, dict) else None
                bucket = component_chunks.setdefault(relative, set())
                for chunk in chunks or []:
                    if isinstance(chunk, str) and "/" in chunk:
                        bucket.add(chunk)

    sizes = resolver.resolve_many(c for chunks in component_chunks.values() for c in chunks)
    bundles = []
    for file in sorted(component_chunks):
        chunks = sorted(component_chunks[file])
        bundles.append(ClientComponentBundle(file, chunks, sum(sizes.get(c, 0) for c in chunks)))
    logger.debug("Attributed chunks to %d client components", len(bundles))
    return bundles


def attribute_bytes(bundles: Optional[Iterable[ClientComponentBundle]]) -> Dict[str, NodeBundleBytes]:
    """Fold bundles into ``{posix file: NodeBundleBytes}``."""
    result: Dict[str, NodeBundleBytes] = {}
    for bundle in bundles or []:
        entry = result.setdefault(to_posix(bundle.file), NodeBundleBytes())
        entry.total_bytes += bundle.total_bytes
        entry.chunks = sorted(set(entry.chunks) | set(bundle.chunks))
    return result
