"""Tests for project config loading."""

from scx_analyzer.config import DEFAULT_CLIENT_SIZE_THRESHOLD
from scx_analyzer.config_manager import AnalyzerConfig, config_path, load_project_config


def write_config(root, text):
    path = config_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestLoadProjectConfig:
    """Test reading .scx/config.toml."""

    def test_missing_file_gives_defaults(self, temp_dir):
        """A project without a config file uses the defaults."""
        assert load_project_config(temp_dir) == AnalyzerConfig()

    def test_values_are_read(self, temp_dir):
        """Every known key in the analyzer section is applied."""
        write_config(temp_dir, """
[analyzer]
dist_dir = "build"
app_dir = "src/app"
client_size_threshold = 65536
forbidden_modules = ["fs", "pg"]
react_version = "19.1.0"
max_workers = 2
""")
        config = load_project_config(temp_dir)
        assert config.dist_dir == "build"
        assert config.app_dir == "src/app"
        assert config.client_size_threshold == 65536
        assert config.forbidden_modules == ["fs", "pg"]
        assert config.react_version == "19.1.0"
        assert config.max_workers == 2

    def test_invalid_values_ignored(self, temp_dir):
        """Wrongly typed values fall back to the defaults one by one."""
        write_config(temp_dir, """
[analyzer]
client_size_threshold = -5
forbidden_modules = "fs"
app_dir = 3
dist_dir = "out"
unknown = true
""")
        config = load_project_config(temp_dir)
        assert config.client_size_threshold == DEFAULT_CLIENT_SIZE_THRESHOLD
        assert config.forbidden_modules is None
        assert config.app_dir == "app"
        assert config.dist_dir == "out"

    def test_corrupt_file_gives_defaults(self, temp_dir):
        """An unparseable config file is ignored."""
        write_config(temp_dir, "[analyzer\nthis is not toml")
        assert load_project_config(temp_dir) == AnalyzerConfig()


def test_with_overrides_skips_none():
    config = AnalyzerConfig(dist_dir="build").with_overrides(dist_dir=None, app_dir="src/app")
    assert config.dist_dir == "build"
    assert config.app_dir == "src/app"
