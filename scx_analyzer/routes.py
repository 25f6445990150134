"""Route string derivation and normalization."""

from __future__ import annotations

import posixpath
import re
from typing import Optional

_ROUTE_GROUP = re.compile(r"^\([^)]+\)$")

_MODULE_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js")

PAGE_FILE_NAMES = frozenset(f"page{ext}" for ext in _MODULE_EXTENSIONS)
ROUTE_FILE_NAMES = frozenset(
    PAGE_FILE_NAMES
    | {f"layout{ext}" for ext in _MODULE_EXTENSIONS}
    | {"route.ts", "route.js"}
)


def to_posix(value: str) -> str:
    return value.replace("\\", "/")


def normalize_route(route: str) -> str:
    """Canonical route key: no groups, no trailing ``/page``, single slashes."""
    segments = [s for s in to_posix(route).split("/") if s]
    segments = [s for s in segments if not _ROUTE_GROUP.match(s)]
    if segments and segments[-1] == "page":
        segments.pop()
    return "/" + "/".join(segments)


def is_route_file(file_path: str) -> bool:
    """True for ``page``/``layout``/``route`` modules the framework treats as segments."""
    return posixpath.basename(to_posix(file_path)) in ROUTE_FILE_NAMES


def is_page_file(file_path: str) -> bool:
    return posixpath.basename(to_posix(file_path)) in PAGE_FILE_NAMES


def derive_route_from_app_file(app_dir: str, file_path: str) -> Optional[str]:
    """Map ``app/(shop)/products/[id]/page.tsx`` to ``/products/[id]``.

    Returns None for files outside *app_dir* or that are not page modules.
    """
    segments = to_posix(file_path).split("/")
    app_segments = [s for s in to_posix(app_dir).split("/") if s]
    if segments[: len(app_segments)] != app_segments or len(segments) <= len(app_segments):
        return None
    if not is_page_file(segments[-1]):
        return None
    return normalize_route("/".join(segments[len(app_segments):-1]))
