"""Tests for hydration and Flight snapshot ingestion."""

import json

import pytest

from scx_analyzer.errors import MalformedArtifactError
from scx_analyzer.models import NodeKind, RouteEntry, XNode
from scx_analyzer.snapshots import merge_hydration, read_flight_snapshot, read_hydration_snapshot


def write_state(root, name, payload):
    state = root / ".scx"
    state.mkdir(parents=True, exist_ok=True)
    text = payload if isinstance(payload, str) else json.dumps(payload)
    (state / name).write_text(text, encoding="utf-8")


class TestHydrationSnapshot:
    """Test reading hydration durations."""

    def test_valid_and_invalid_entries(self, temp_dir):
        write_state(temp_dir, "hydration.json", {
            "module:app/A.tsx": 12.5,
            "module:app/B.tsx": "3",
            "module:app/C.tsx": -1,
            "module:app/D.tsx": "fast",
            "module:app/E.tsx": True,
            "module:app/F.tsx": None,
        })
        assert read_hydration_snapshot(temp_dir) == {"module:app/A.tsx": 12.5, "module:app/B.tsx": 3.0}

    def test_missing_snapshot(self, temp_dir):
        assert read_hydration_snapshot(temp_dir) == {}

    def test_corrupt_snapshot(self, temp_dir):
        write_state(temp_dir, "hydration.json", "{oops")
        with pytest.raises(MalformedArtifactError) as info:
            read_hydration_snapshot(temp_dir)
        assert "hydration snapshot" in info.value.message


class TestFlightSnapshot:
    """Test reading Flight chunk samples."""

    def test_samples(self, temp_dir):
        write_state(temp_dir, "flight.json", {"samples": [
            {"route": "/", "ts": 10, "chunkIndex": 0, "label": "shell"},
            {"route": "/", "timestamp": "25.5", "chunkIndex": -2, "label": "  "},
            {"route": "", "ts": 1, "chunkIndex": 0},
            {"route": "/x", "ts": "never", "chunkIndex": 1},
            "garbage",
        ]})
        samples = read_flight_snapshot(temp_dir)
        assert [s.to_dict() for s in samples] == [
            {"route": "/", "ts": 10.0, "chunkIndex": 0, "label": "shell"},
            {"route": "/", "ts": 25.5, "chunkIndex": 0},
        ]

    def test_corrupt_snapshot(self, temp_dir):
        write_state(temp_dir, "flight.json", "[")
        with pytest.raises(MalformedArtifactError):
            read_flight_snapshot(temp_dir)

    def test_missing_snapshot(self, temp_dir):
        assert read_flight_snapshot(temp_dir) == []


class TestMergeHydration:
    """Test applying durations to the node graph."""

    def _graph(self):
        nodes = {
            "route:/": XNode("route:/", NodeKind.ROUTE, children=["module:app/page.tsx"]),
            "module:app/page.tsx": XNode("module:app/page.tsx", NodeKind.SERVER, children=["module:app/A.tsx"]),
            "module:app/A.tsx": XNode("module:app/A.tsx", NodeKind.CLIENT, children=["module:app/B.tsx"]),
            "module:app/B.tsx": XNode("module:app/B.tsx", NodeKind.CLIENT, children=["module:app/A.tsx"]),
        }
        return nodes, [RouteEntry("/", "route:/")]

    def test_route_total_with_cycle(self):
        nodes, routes = self._graph()
        durations = {"module:app/A.tsx": 5.0, "module:app/B.tsx": 2.5, "module:app/page.tsx": 100.0}
        merged = merge_hydration(nodes, routes, durations)
        assert merged["module:app/A.tsx"].hydration_ms == 5.0
        assert merged["route:/"].hydration_ms == 7.5

    def test_input_is_not_mutated(self):
        nodes, routes = self._graph()
        merge_hydration(nodes, routes, {"module:app/A.tsx": 1.0})
        assert nodes["module:app/A.tsx"].hydration_ms is None
        assert nodes["route:/"].hydration_ms is None

    def test_no_durations(self):
        nodes, routes = self._graph()
        merged = merge_hydration(nodes, routes, {})
        assert merged["route:/"].hydration_ms is None
