"""Pytest configuration and fixtures for scx analyzer tests."""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional

import pytest


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


def write_files(root: Path, files: Dict[str, str]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def _client_manifest_js(entry: str, modules: Dict[str, List[str]]) -> str:
    record = {"clientModules": {path: {"id": i, "name": "*", "chunks": chunks, "async": False}
                                for i, (path, chunks) in enumerate(modules.items())}}
    return (
        "globalThis.__RSC_MANIFEST=(globalThis.__RSC_MANIFEST||{});"
        f"globalThis.__RSC_MANIFEST[{json.dumps(entry)}]={json.dumps(record)};"
    )


@pytest.fixture
def write_project(temp_dir: Path) -> Callable[..., Path]:
    """Lay out a project tree with a built ``.next`` directory.

    ``client_manifests`` maps a manifest entry key (e.g. ``"/page"``) to
    ``{project-relative module path: [chunks]}``; module paths are written
    as absolute paths the way the framework emits them.
    """

    def _write(
        files: Dict[str, str],
        build_manifest: Optional[dict] = None,
        app_build_manifest: Optional[dict] = None,
        sizes: Optional[Dict[str, List[dict]]] = None,
        chunk_files: Optional[Dict[str, int]] = None,
        client_manifests: Optional[Dict[str, Dict[str, List[str]]]] = None,
        prerender: Optional[dict] = None,
        package_json: Optional[dict] = None,
        built: bool = True,
    ) -> Path:
        root = temp_dir / "project"
        write_files(root, files)
        if package_json is not None:
            (root / "package.json").write_text(json.dumps(package_json), encoding="utf-8")
        if not built:
            return root

        dist = root / ".next"
        (dist / "server").mkdir(parents=True, exist_ok=True)
        (dist / "build-manifest.json").write_text(
            json.dumps(build_manifest or {"pages": {}, "app": {}}), encoding="utf-8"
        )
        (dist / "server" / "app-build-manifest.json").write_text(
            json.dumps(app_build_manifest or {"pages": {}}), encoding="utf-8"
        )
        if sizes is not None:
            (dist / "build-manifest.json.__scx_sizes__").write_text(json.dumps(sizes), encoding="utf-8")
        for chunk, size in (chunk_files or {}).items():
            path = dist / chunk
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"x" * size)
        for entry, modules in (client_manifests or {}).items():
            target = dist / "server" / "app" / (entry.strip("/") + "_client-reference-manifest.js")
            target.parent.mkdir(parents=True, exist_ok=True)
            absolute = {str(root / rel): chunks for rel, chunks in modules.items()}
            target.write_text(_client_manifest_js(entry, absolute), encoding="utf-8")
        if prerender is not None:
            (dist / "prerender-manifest.json").write_text(json.dumps(prerender), encoding="utf-8")
        return root

    return _write
