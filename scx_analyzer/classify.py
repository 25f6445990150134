"""Server/client component classification."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .config import DEFAULT_MAX_WORKERS
from .models import NodeKind
from .parser import named_children, parse_source, string_value
from .routes import to_posix

logger = logging.getLogger(__name__)

USE_CLIENT = "use client"


@dataclass(frozen=True)
class ClassificationResult:
    file_name: str
    kind: NodeKind
    has_use_client_directive: bool


@dataclass(frozen=True)
class ClassifiedFile:
    """A source file read from disk together with its component kind."""

    path: Path
    relative_path: str
    kind: NodeKind
    source: str

    @property
    def is_client(self) -> bool:
        return self.kind == NodeKind.CLIENT


def has_use_client_directive(source_text: str, file_name: str = "inline.tsx") -> bool:
    """True only when the first statement of the file is ``"use client"``.

    A comment, import or any other statement ahead of the directive makes
    the file a server component.
    """
    root = parse_source(source_text, file_name).root
    if not root.named_children:
        return False
    first = root.named_children[0]
    if first.type != "expression_statement":
        return False
    expression = named_children(first)
    if len(expression) != 1 or expression[0].type != "string":
        return False
    return string_value(expression[0]) == USE_CLIENT


def classify_component(file_name: str, source_text: str) -> ClassificationResult:
    directive = has_use_client_directive(source_text, file_name)
    return ClassificationResult(
        file_name=file_name,
        kind=NodeKind.CLIENT if directive else NodeKind.SERVER,
        has_use_client_directive=directive,
    )


def _classify_path(project_root: Path, path: Path) -> Optional[ClassifiedFile]:
    try:
        source = path.read_text(encoding="utf-8", errors="replace")
        result = classify_component(str(path), source)
    except Exception as exc:
        logger.warning("Failed to classify %s: %s", path, exc)
        return None
    try:
        relative = to_posix(str(path.relative_to(project_root)))
    except ValueError:
        relative = to_posix(str(path))
    return ClassifiedFile(path=path, relative_path=relative, kind=result.kind, source=source)


def classify_files(
    project_root: Path,
    paths: Iterable[Path],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> List[ClassifiedFile]:
    """Read and classify *paths* concurrently.

    Unreadable files are logged and left out. Results are sorted by their
    project-relative posix path.
    """
    project_root = Path(project_root)
    paths = [Path(p) for p in paths]
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        results = list(pool.map(lambda p: _classify_path(project_root, p), paths))
    classified = [r for r in results if r is not None]
    classified.sort(key=lambda r: r.relative_path)
    return classified
