"""Bundle-level rules: oversized client components and shared chunks."""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from ..client_bundles import ClientComponentBundle
from ..config import DEFAULT_CLIENT_SIZE_THRESHOLD
from ..models import Diagnostic, DiagnosticLevel, Location

OVERSIZED_RULE_ID = "client-component-oversized"
DUPLICATE_RULE_ID = "duplicate-dependencies"


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    return f"{size / 1024:.1f}KB"


def shared_chunk_groups(bundles: Iterable[ClientComponentBundle]) -> Dict[FrozenSet[str], List[str]]:
    """Group chunks owned by two or more components by their exact owner set."""
    owners: Dict[str, Set[str]] = {}
    for bundle in bundles:
        for chunk in bundle.chunks:
            owners.setdefault(chunk, set()).add(bundle.file)

    groups: Dict[FrozenSet[str], List[str]] = {}
    for chunk in sorted(owners):
        if len(owners[chunk]) > 1:
            groups.setdefault(frozenset(owners[chunk]), []).append(chunk)
    return groups


def detect_client_size_issues(
    bundles: Optional[Iterable[ClientComponentBundle]],
    threshold_bytes: int = DEFAULT_CLIENT_SIZE_THRESHOLD,
    route: Optional[str] = None,
) -> List[Diagnostic]:
    bundles = list(bundles or [])
    if not bundles:
        return []
    diagnostics: List[Diagnostic] = []

    for bundle in bundles:
        if bundle.total_bytes > threshold_bytes:
            percent = (bundle.total_bytes - threshold_bytes) / threshold_bytes * 100
            diagnostics.append(Diagnostic(
                OVERSIZED_RULE_ID,
                DiagnosticLevel.WARN,
                f"Client component is {format_bytes(bundle.total_bytes)} ({percent:.0f}% over "
                f"{format_bytes(threshold_bytes)} threshold). Consider code splitting or lazy loading.",
                Location(bundle.file, 0, 0),
            ))

    groups = shared_chunk_groups(bundles)
    for owner_set in sorted(groups, key=lambda s: sorted(s)):
        chunks = groups[owner_set]
        for component in sorted(owner_set):
            others = sorted(owner_set - {component})
            where = f" on route '{route}'" if route else ""
            noun = "chunk" if len(chunks) == 1 else "chunks"
            diagnostics.append(Diagnostic(
                DUPLICATE_RULE_ID,
                DiagnosticLevel.WARN,
                f"Component shares {len(chunks)} {noun} ({', '.join(chunks)}) with "
                f"{', '.join(others)}{where}. Consider extracting shared code to a common module "
                "or using dynamic imports.",
                Location(component, 0, 0),
            ))

    return diagnostics
