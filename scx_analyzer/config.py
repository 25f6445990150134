"""Default paths and analyzer constants."""

from __future__ import annotations

import os
from typing import Set, Tuple

DEFAULT_DIST_DIR = ".next"
DEFAULT_APP_DIR = "app"

# Runtime state written by capture tooling, read-only for the analyzer
STATE_DIR = ".scx"
CONFIG_FILE_NAME = "config.toml"
HYDRATION_SNAPSHOT_PATH: Tuple[str, str] = (STATE_DIR, "hydration.json")
FLIGHT_SNAPSHOT_PATH: Tuple[str, str] = (STATE_DIR, "flight.json")

SUPPORTED_EXTENSIONS: Tuple[str, ...] = (".tsx", ".ts", ".jsx", ".js")

IGNORED_DIRS: Set[str] = {
    "node_modules", ".git", ".next", ".turbo", ".vercel", STATE_DIR,
}

DEFAULT_CLIENT_SIZE_THRESHOLD = 51200  # 50 KiB
MIN_REACT_CACHE_MAJOR = 19
MODEL_VERSION = "0.1"

DEFAULT_MAX_WORKERS = int(os.environ.get("SCX_MAX_WORKERS", str(min(8, (os.cpu_count() or 1) + 4))))
