"""Tests for the module graph and route nodes."""

from pathlib import Path

from scx_analyzer.classify import ClassifiedFile
from scx_analyzer.client_bundles import ClientComponentBundle
from scx_analyzer.graph import build_graph, extract_import_specifiers, module_id, resolve_import
from scx_analyzer.models import Diagnostic, DiagnosticLevel, Location, NodeKind


def classified(path: str, source: str, kind: NodeKind = NodeKind.SERVER) -> ClassifiedFile:
    return ClassifiedFile(Path("/project") / path, path, kind, source)


class TestImportResolution:
    """Test static import extraction and relative resolution."""

    def test_extract_static_imports_only(self):
        source = """
import React from 'react';
import { Button } from './Button';
const Lazy = () => import('./Lazy');
"""
        assert extract_import_specifiers(source) == ["react", "./Button"]

    def test_resolve_with_extension_probing(self):
        available = {"app/Button.tsx", "lib/utils/index.ts", "lib/data.js"}
        assert resolve_import("app/page.tsx", "./Button", available) == "app/Button.tsx"
        assert resolve_import("app/page.tsx", "../lib/utils", available) == "lib/utils/index.ts"
        assert resolve_import("app/page.tsx", "../lib/data.js", available) == "lib/data.js"

    def test_unresolved_specifiers(self):
        available = {"app/Button.tsx"}
        assert resolve_import("app/page.tsx", "react", available) is None
        assert resolve_import("app/page.tsx", "@/components/Button", available) is None
        assert resolve_import("app/page.tsx", "./Missing", available) is None


class TestBuildGraph:
    """Test node and route construction."""

    def test_nodes_and_routes(self):
        files = [
            classified("app/page.tsx", "import { Button } from './Button';\nexport default function P() {}"),
            classified("app/Button.tsx", "'use client';\nexport function Button() {}", NodeKind.CLIENT),
            classified("app/(marketing)/about/page.tsx", "export default function About() {}"),
        ]
        result = build_graph(files, app_dir="app")
        assert [r.route for r in result.routes] == ["/", "/about"]

        root = result.nodes["route:/"]
        assert root.kind == NodeKind.ROUTE
        assert root.children == ["module:app/page.tsx"]

        page = result.nodes["module:app/page.tsx"]
        assert page.children == ["module:app/Button.tsx"]
        assert page.name == "page.tsx"
        assert result.nodes["module:app/Button.tsx"].kind == NodeKind.CLIENT

    def test_findings_and_bytes_attached(self):
        diagnostic = Diagnostic("r", DiagnosticLevel.WARN, "m", Location("app/Button.tsx"))
        files = [classified("app/Button.tsx", "'use client';", NodeKind.CLIENT)]
        bundles = [ClientComponentBundle("app/Button.tsx", ["static/chunks/a.js"], 2048)]
        result = build_graph(files, diagnostics_by_file={"app/Button.tsx": [diagnostic]}, client_bundles=bundles)
        node = result.nodes[module_id("app/Button.tsx")]
        assert node.diagnostics == [diagnostic]
        assert node.bytes == 2048

    def test_segment_config_on_route(self):
        source = """
import { cookies } from 'next/headers';
export const dynamic = 'force-static';
export default function Page() { cookies(); return null; }
"""
        result = build_graph([classified("app/shop/page.tsx", source)], app_dir="app")
        route = result.routes[0]
        assert route.segment_config.dynamic == "force-static"
        module_rules = [d.rule for d in result.nodes["module:app/shop/page.tsx"].diagnostics]
        route_rules = [d.rule for d in result.nodes["route:/shop"].diagnostics]
        assert module_rules == ["route-segment-config-conflict"]
        assert route_rules == ["route-segment-config-conflict"]

    def test_layout_is_not_a_route(self):
        files = [classified("app/layout.tsx", "export const revalidate = 10;\nexport default function L() {}")]
        result = build_graph(files, app_dir="app")
        assert result.routes == []
        assert "module:app/layout.tsx" in result.nodes

    def test_files_outside_app_dir(self):
        result = build_graph([classified("components/page.tsx", "export default 1;")], app_dir="app")
        assert result.routes == []
