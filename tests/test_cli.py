"""Integration tests for CLI commands."""

import json

from typer.testing import CliRunner

from scx_analyzer import __version__
from scx_analyzer.cli import app

runner = CliRunner()


def built_project(write_project):
    return write_project(
        {
            "app/page.tsx": "export default function Home() { return <main />; }",
            "app/about/page.tsx": "export const revalidate = 60;\nexport default function About() { return null; }",
        },
        app_build_manifest={"pages": {
            "/page": ["static/chunks/app/page.js"],
            "/about/page": ["static/chunks/app/about.js"],
        }},
        sizes={"static/chunks/app/page.js": [{"name": "page.js", "size": 2048}]},
        package_json={"dependencies": {"next": "15.1.0"}},
    )


class TestVersion:
    """Tests for the --version flag."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"scx-analyzer v{__version__}" in result.output


class TestAnalyzeCommand:
    """Tests for 'scx analyze'."""

    def test_writes_model_file(self, write_project, temp_dir):
        """The model JSON is written to --out."""
        root = built_project(write_project)
        out = temp_dir / "reports" / "model.json"
        result = runner.invoke(app, ["analyze", str(root), "--out", str(out)])

        assert result.exit_code == 0
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["version"] == "0.1"
        assert [r["route"] for r in data["routes"]] == ["/", "/about"]
        assert data["routes"][0]["totalBytes"] == 2048
        assert data["build"]["frameworkVersion"] == "15.1.0"
        assert "module:app/page.tsx" in data["nodes"]

    def test_unbuilt_project_fails(self, write_project):
        """An unbuilt project exits with code 1 and explains why."""
        root = write_project({"app/page.tsx": "export default () => null;"}, built=False)
        result = runner.invoke(app, ["analyze", str(root)])

        assert result.exit_code == 1
        assert "not built" in result.output

    def test_nonexistent_path(self):
        result = runner.invoke(app, ["analyze", "/nonexistent/project"])
        assert result.exit_code != 0


class TestRoutesCommand:
    """Tests for 'scx routes'."""

    def test_lists_manifest_routes(self, write_project):
        root = built_project(write_project)
        result = runner.invoke(app, ["routes", str(root)])

        assert result.exit_code == 0
        assert "/about" in result.output
        assert "2048" in result.output
