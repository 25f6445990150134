"""Per-project analyzer settings from ``<project>/.scx/config.toml``.

Example::

    [analyzer]
    dist_dir = ".next"
    app_dir = "src/app"
    client_size_threshold = 65536
    forbidden_modules = ["fs", "path", "child_process"]
    react_version = "19.0.0"
    max_workers = 4
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from .config import (
    CONFIG_FILE_NAME,
    DEFAULT_APP_DIR,
    DEFAULT_CLIENT_SIZE_THRESHOLD,
    DEFAULT_DIST_DIR,
    DEFAULT_MAX_WORKERS,
    STATE_DIR,
)

logger = logging.getLogger(__name__)

CONFIG_SECTION = "analyzer"


@dataclass(frozen=True)
class AnalyzerConfig:
    dist_dir: str = DEFAULT_DIST_DIR
    app_dir: str = DEFAULT_APP_DIR
    client_size_threshold: int = DEFAULT_CLIENT_SIZE_THRESHOLD
    forbidden_modules: Optional[List[str]] = None
    react_version: Optional[str] = None
    max_workers: int = DEFAULT_MAX_WORKERS

    def with_overrides(self, **overrides: Any) -> "AnalyzerConfig":
        """Copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def config_path(project_root: Path) -> Path:
    return Path(project_root) / STATE_DIR / CONFIG_FILE_NAME


def _coerce(section: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(AnalyzerConfig)}
    values: Dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            logger.debug("Ignoring unknown config key %s", key)
            continue
        if key in ("client_size_threshold", "max_workers"):
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                logger.warning("Ignoring invalid %s=%r in config", key, value)
                continue
        elif key == "forbidden_modules":
            if not isinstance(value, list) or not all(isinstance(m, str) for m in value):
                logger.warning("Ignoring invalid forbidden_modules in config")
                continue
        elif not isinstance(value, str):
            logger.warning("Ignoring invalid %s=%r in config", key, value)
            continue
        values[key] = value
    return values


def load_project_config(project_root: Path) -> AnalyzerConfig:
    """Load the ``[analyzer]`` section, falling back to defaults.

    A missing file yields defaults silently; an unreadable one is logged
    and also yields defaults.
    """
    path = config_path(project_root)
    if not path.is_file():
        return AnalyzerConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except Exception as exc:
        logger.warning("Failed to read %s, using defaults: %s", path, exc)
        return AnalyzerConfig()
    section = data.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        return AnalyzerConfig()
    return AnalyzerConfig(**_coerce(section))
