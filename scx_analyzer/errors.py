"""Exceptions raised by the analysis engine.

Only two failure classes abort a run: a project that has not been built
(required manifests missing) and an artifact that exists but cannot be
parsed. Everything else degrades silently.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional


class ScxError(Exception):
    """Base exception for all analyzer errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ManifestNotFoundError(ScxError):
    """Raised when the required build manifests are missing."""

    def __init__(self, searched_paths: Iterable[Path], dist_dir: str = ".next"):
        self.searched_paths: List[Path] = list(searched_paths)
        listing = "\n".join(f"  - {p}" for p in self.searched_paths)
        super().__init__(
            f"Project not built: no build manifests found in '{dist_dir}'. "
            f"Run the production build (e.g. `next build`) first.\nSearched:\n{listing}",
            {"searched_paths": [str(p) for p in self.searched_paths]},
        )


class MalformedArtifactError(ScxError):
    """Raised when a present manifest or snapshot cannot be parsed."""

    def __init__(self, path: Path, reason: str, kind: str = "artifact"):
        super().__init__(f"Failed to read {kind} at {path}: {reason}", {"path": str(path)})
        self.path = path
        self.reason = reason
