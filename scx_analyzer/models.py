"""Core data models produced by the analysis engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple, Union


class NodeKind(str, Enum):
    ROUTE = "route"
    SERVER = "server"
    CLIENT = "client"
    SUSPENSE = "suspense"


class DiagnosticLevel(str, Enum):
    ERROR = "error"
    WARN = "warn"
    INFO = "info"


DIAGNOSTIC_LEVELS = frozenset({DiagnosticLevel.ERROR, DiagnosticLevel.WARN})
SUGGESTION_LEVELS = frozenset({DiagnosticLevel.WARN, DiagnosticLevel.INFO})

# Node kinds whose own hydration time counts toward a route total
HYDRATING_KINDS = frozenset({NodeKind.CLIENT, NodeKind.SUSPENSE})


@dataclass(frozen=True)
class Location:
    """A byte range (0-based, UTF-8 offsets) in one source file."""

    file: str
    start: int = 0
    end: int = 0

    def to_line_col(self, source: str) -> Tuple[int, int]:
        """Return the 1-based (line, column) of ``start`` within *source*."""
        prefix = source.encode("utf-8")[: self.start].decode("utf-8", errors="ignore")
        line = prefix.count("\n") + 1
        col = len(prefix) - (prefix.rfind("\n") + 1) + 1
        return line, col

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "range": {"from": self.start, "to": self.end}}


@dataclass(frozen=True)
class Diagnostic:
    rule: str
    level: DiagnosticLevel
    message: str
    loc: Optional[Location] = None

    def __post_init__(self) -> None:
        if DiagnosticLevel(self.level) not in DIAGNOSTIC_LEVELS:
            raise ValueError(f"Diagnostic level must be error or warn, got {self.level!r}")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "rule": self.rule,
            "level": DiagnosticLevel(self.level).value,
            "message": self.message,
        }
        if self.loc is not None:
            data["loc"] = self.loc.to_dict()
        return data


@dataclass(frozen=True)
class Suggestion:
    rule: str
    level: DiagnosticLevel
    message: str
    loc: Optional[Location] = None

    def __post_init__(self) -> None:
        if DiagnosticLevel(self.level) not in SUGGESTION_LEVELS:
            raise ValueError(f"Suggestion level must be warn or info, got {self.level!r}")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "rule": self.rule,
            "level": DiagnosticLevel(self.level).value,
            "message": self.message,
        }
        if self.loc is not None:
            data["loc"] = self.loc.to_dict()
        return data


Finding = Union[Diagnostic, Suggestion]


@dataclass
class FileCacheMetadata:
    """Caching and revalidation facts collected from a single file."""

    tags: Set[str] = field(default_factory=set)
    cache_modes: Set[str] = field(default_factory=set)
    revalidate_seconds: Set[Union[int, float]] = field(default_factory=set)
    has_revalidate_false: bool = False
    revalidate_tag_calls: Set[str] = field(default_factory=set)
    revalidate_path_calls: Set[str] = field(default_factory=set)
    exported_dynamic: Optional[str] = None
    experimental_ppr: bool = False
    uses_dynamic_apis: bool = False

    def cache_summary(self) -> Optional[Dict[str, Any]]:
        """Node-level ``cache`` payload, or None when nothing was found."""
        summary: Dict[str, Any] = {}
        if self.cache_modes:
            summary["modes"] = sorted(self.cache_modes)
        if self.revalidate_seconds:
            summary["revalidateSeconds"] = sorted(self.revalidate_seconds)
        if self.has_revalidate_false:
            summary["revalidateFalse"] = True
        if self.exported_dynamic:
            summary["dynamic"] = self.exported_dynamic
        if self.experimental_ppr:
            summary["experimentalPpr"] = True
        if self.uses_dynamic_apis:
            summary["usesDynamicApis"] = True
        return summary or None

    def mutation_summary(self) -> Optional[Dict[str, List[str]]]:
        if not self.revalidate_tag_calls and not self.revalidate_path_calls:
            return None
        return {
            "revalidateTags": sorted(self.revalidate_tag_calls),
            "revalidatePaths": sorted(self.revalidate_path_calls),
        }


@dataclass
class RouteSegmentConfig:
    dynamic: Optional[str] = None
    revalidate: Optional[Union[int, float, bool]] = None
    fetch_cache: Optional[str] = None
    runtime: Optional[str] = None
    preferred_region: Optional[Union[str, List[str]]] = None
    # option name -> (start, end) byte range of the exporting statement
    positions: Dict[str, Tuple[int, int]] = field(default_factory=dict, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.dynamic is not None:
            data["dynamic"] = self.dynamic
        if self.revalidate is not None:
            data["revalidate"] = self.revalidate
        if self.fetch_cache is not None:
            data["fetchCache"] = self.fetch_cache
        if self.runtime is not None:
            data["runtime"] = self.runtime
        if self.preferred_region is not None:
            data["preferredRegion"] = self.preferred_region
        return data


@dataclass
class XNode:
    id: str
    kind: NodeKind
    file: Optional[str] = None
    name: Optional[str] = None
    children: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)
    bytes: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    cache: Optional[Dict[str, Any]] = None
    mutations: Optional[Dict[str, List[str]]] = None
    hydration_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "kind": NodeKind(self.kind).value}
        if self.file is not None:
            data["file"] = self.file
        if self.name is not None:
            data["name"] = self.name
        data["children"] = list(self.children)
        if self.diagnostics:
            data["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        if self.suggestions:
            data["suggestions"] = [s.to_dict() for s in self.suggestions]
        if self.bytes is not None:
            data["bytes"] = self.bytes
        if self.tags:
            data["tags"] = list(self.tags)
        if self.cache:
            data["cache"] = dict(self.cache)
        if self.mutations:
            data["mutations"] = dict(self.mutations)
        if self.hydration_ms is not None:
            data["hydrationMs"] = self.hydration_ms
        return data


@dataclass
class RouteCacheInfo:
    revalidate_seconds: List[Union[int, float]] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"revalidateSeconds": list(self.revalidate_seconds), "tags": list(self.tags)}


@dataclass
class RouteEntry:
    route: str
    root_node_id: str
    chunks: Optional[List[str]] = None
    total_bytes: Optional[int] = None
    cache: Optional[RouteCacheInfo] = None
    segment_config: Optional[RouteSegmentConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"route": self.route, "rootNodeId": self.root_node_id}
        if self.chunks is not None:
            data["chunks"] = list(self.chunks)
        if self.total_bytes is not None:
            data["totalBytes"] = self.total_bytes
        if self.cache is not None:
            data["cache"] = self.cache.to_dict()
        if self.segment_config is not None:
            data["segmentConfig"] = self.segment_config.to_dict()
        return data


@dataclass(frozen=True)
class FlightSample:
    route: str
    ts: float
    chunk_index: int
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"route": self.route, "ts": self.ts, "chunkIndex": self.chunk_index}
        if self.label is not None:
            data["label"] = self.label
        return data


@dataclass
class BuildInfo:
    framework_version: str
    timestamp: str


@dataclass
class Model:
    version: str
    routes: List[RouteEntry]
    nodes: Dict[str, XNode]
    build: BuildInfo
    flight: Optional[List[FlightSample]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "version": self.version,
            "routes": [r.to_dict() for r in self.routes],
            "nodes": {node_id: self.nodes[node_id].to_dict() for node_id in sorted(self.nodes)},
            "build": {
                "frameworkVersion": self.build.framework_version,
                "timestamp": self.build.timestamp,
            },
        }
        if self.flight is not None:
            data["flight"] = {"samples": [s.to_dict() for s in self.flight]}
        return data
