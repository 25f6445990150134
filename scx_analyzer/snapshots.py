"""Captured runtime snapshots: hydration durations and Flight chunk timelines."""

from __future__ import annotations

import dataclasses
import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .config import FLIGHT_SNAPSHOT_PATH, HYDRATION_SNAPSHOT_PATH
from .errors import MalformedArtifactError
from .models import HYDRATING_KINDS, FlightSample, RouteEntry, XNode

logger = logging.getLogger(__name__)


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _load(path: Path, kind: str) -> Any:
    if not path.is_file():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (ValueError, OSError) as exc:
        raise MalformedArtifactError(path, str(exc), kind=kind) from exc


def read_hydration_snapshot(project_root: Path) -> Dict[str, float]:
    """``{node id: duration ms}``; negative, non-finite or non-numeric entries are dropped."""
    path = Path(project_root).joinpath(*HYDRATION_SNAPSHOT_PATH)
    raw = _load(path, "hydration snapshot")
    if not isinstance(raw, dict):
        return {}
    durations: Dict[str, float] = {}
    for node_id, value in raw.items():
        number = _to_number(value)
        if not node_id or number is None or number < 0:
            logger.debug("Dropping hydration entry %r=%r", node_id, value)
            continue
        durations[node_id] = number
    return durations


def read_flight_snapshot(project_root: Path) -> List[FlightSample]:
    path = Path(project_root).joinpath(*FLIGHT_SNAPSHOT_PATH)
    raw = _load(path, "Flight snapshot")
    samples_in = raw.get("samples") if isinstance(raw, dict) else None
    if not isinstance(samples_in, list):
        return []

    samples: List[FlightSample] = []
    for entry in samples_in:
        if not isinstance(entry, dict):
            continue
        route = entry.get("route")
        if not isinstance(route, str) or not route.strip():
            continue
        ts = _to_number(entry.get("ts", entry.get("timestamp")))
        chunk = _to_number(entry.get("chunkIndex"))
        if ts is None or chunk is None:
            continue
        label = entry.get("label")
        samples.append(FlightSample(
            route=route,
            ts=ts,
            chunk_index=max(0, int(chunk)),
            label=label if isinstance(label, str) and label.strip() else None,
        ))
    return samples


def _subtree_duration(node_id: str, nodes: Dict[str, XNode], durations: Dict[str, float], seen: Set[str]) -> float:
    if node_id in seen:
        return 0.0
    seen.add(node_id)
    node = nodes.get(node_id)
    if node is None:
        return 0.0
    total = durations.get(node_id, 0.0) if node.kind in HYDRATING_KINDS else 0.0
    for child in node.children:
        total += _subtree_duration(child, nodes, durations, seen)
    return total


def merge_hydration(
    nodes: Dict[str, XNode],
    routes: List[RouteEntry],
    durations: Dict[str, float],
) -> Dict[str, XNode]:
    """Return a new node map with hydration durations and per-route totals applied."""
    merged = {
        node_id: dataclasses.replace(node, hydration_ms=durations[node_id]) if node_id in durations else node
        for node_id, node in nodes.items()
    }
    for route in routes:
        root = merged.get(route.root_node_id)
        if root is None:
            continue
        total = _subtree_duration(route.root_node_id, merged, durations, set())
        if total > 0:
            merged[route.root_node_id] = dataclasses.replace(root, hydration_ms=total)
    return merged
