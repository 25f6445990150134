"""Analysis rules. Each rule is a plain function returning frozen findings."""

from .client_size import detect_client_size_issues
from .forbidden_imports import analyze_client_forbidden_imports, collect_forbidden_import_diagnostics
from .parallel_await import collect_await_suggestions, suggest_hoist_fetch, suggest_promise_all
from .react_cache import detect_react_cache_opportunities
from .route_segment_config import (
    analyze_route_segment_config,
    detect_config_conflicts,
    parse_route_segment_config,
)
from .serialization_boundary import analyze_serialization_boundary
from .suspense_boundary import detect_suspense_boundary_issues

__all__ = [
    "analyze_client_forbidden_imports",
    "analyze_route_segment_config",
    "analyze_serialization_boundary",
    "collect_await_suggestions",
    "collect_forbidden_import_diagnostics",
    "detect_client_size_issues",
    "detect_config_conflicts",
    "detect_react_cache_opportunities",
    "detect_suspense_boundary_issues",
    "parse_route_segment_config",
    "suggest_hoist_fetch",
    "suggest_promise_all",
]
