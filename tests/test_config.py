"""
Unit Tests for Configuration Module

Tests configuration loading, validation, environment variable merging,
and error handling.

Author: treemirror Project
License: MIT
"""

import os

import pytest
import yaml

from treemirror.config.config_loader import ConfigLoader, load_config
from treemirror.config.schema import MirrorConfig, ScanConfig, SyncOptions
from treemirror.core.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep TREEMIRROR_* variables from the developer's shell out of the tests."""
    for name in (
        "TREEMIRROR_CONFIG",
        "TREEMIRROR_LOG_LEVEL",
        "TREEMIRROR_LOG_FILE",
        "TREEMIRROR_WORKERS",
        "TREEMIRROR_DELETE_REMOVED",
        "TREEMIRROR_PRESERVE_TIMESTAMPS",
        "TREEMIRROR_VERIFY_AFTER_COPY",
        "TREEMIRROR_RESPECT_IGNORE_FILES",
    ):
        monkeypatch.delenv(name, raising=False)


class TestConfigLoader:
    """Test suite for ConfigLoader class."""

    def test_load_nonexistent_config_uses_defaults(self, tmp_path):
        """Test that a missing config file yields the defaults."""
        loader = ConfigLoader(str(tmp_path / "config.yaml"))

        config = loader.load()

        assert isinstance(config, MirrorConfig)
        assert config.sync.delete_removed is False
        assert config.sync.preserve_timestamps is True
        assert config.sync.verify_after_copy is False
        assert config.scan.respect_ignore_files is True
        assert config.scan.workers is None
        assert loader.config is config

    def test_load_yaml_values(self, tmp_path):
        """Test that values from the YAML file are applied."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "sync:\n"
            "  delete_removed: true\n"
            "  workers: 3\n"
            "scan:\n"
            "  ignore_file_names: ['.mirrorignore']\n"
            "logging:\n"
            "  log_level: DEBUG\n"
        )

        config = load_config(str(config_path))

        assert config.sync.delete_removed is True
        assert config.sync.workers == 3
        assert config.scan.ignore_file_names == [".mirrorignore"]
        assert config.logging.log_level == "DEBUG"

    def test_env_var_override(self, tmp_path, monkeypatch):
        """Test environment variable overrides."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("sync:\n  delete_removed: false\n")

        monkeypatch.setenv("TREEMIRROR_DELETE_REMOVED", "true")
        monkeypatch.setenv("TREEMIRROR_VERIFY_AFTER_COPY", "1")
        monkeypatch.setenv("TREEMIRROR_PRESERVE_TIMESTAMPS", "no")
        monkeypatch.setenv("TREEMIRROR_WORKERS", "2")
        monkeypatch.setenv("TREEMIRROR_LOG_LEVEL", "error")

        config = ConfigLoader(str(config_path)).load()

        assert config.sync.delete_removed is True
        assert config.sync.verify_after_copy is True
        assert config.sync.preserve_timestamps is False
        assert config.sync.workers == 2
        assert config.scan.workers == 2
        assert config.logging.log_level == "ERROR"

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        """Test that TREEMIRROR_CONFIG selects the file when no path is given."""
        config_path = tmp_path / "custom.yaml"
        config_path.write_text("scan:\n  respect_ignore_files: false\n")
        monkeypatch.setenv("TREEMIRROR_CONFIG", str(config_path))

        config = ConfigLoader().load()

        assert config.scan.respect_ignore_files is False

    def test_invalid_workers_env_raises(self, tmp_path, monkeypatch):
        """Test that a non-numeric worker count is rejected."""
        monkeypatch.setenv("TREEMIRROR_WORKERS", "many")

        with pytest.raises(ConfigError):
            ConfigLoader(str(tmp_path / "config.yaml")).load()

    def test_invalid_yaml_raises(self, tmp_path):
        """Test that unparsable YAML raises ConfigError."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("sync: [unclosed\n")

        with pytest.raises(ConfigError, match="Failed to parse"):
            ConfigLoader(str(config_path)).load()

    def test_non_mapping_yaml_raises(self, tmp_path):
        """Test that a YAML list at the top level is rejected."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- one\n- two\n")

        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader(str(config_path)).load()

    def test_invalid_values_raise(self, tmp_path):
        """Test that schema violations surface as ConfigError."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("sync:\n  workers: 0\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            ConfigLoader(str(config_path)).load()

    def test_save_and_reload(self, tmp_path):
        """Test saving configuration and loading it back."""
        config_path = tmp_path / "nested" / "config.yaml"
        loader = ConfigLoader(str(config_path))
        config = loader.load()
        config.sync.verify_after_copy = True
        config.scan.workers = 4

        loader.save(config)

        with open(config_path) as f:
            data = yaml.safe_load(f)
        assert data["sync"]["verify_after_copy"] is True

        reloaded = loader.reload()
        assert reloaded.sync.verify_after_copy is True
        assert reloaded.scan.workers == 4

    def test_empty_section_with_env_override(self, tmp_path, monkeypatch):
        """Test that a bare section header plus an override loads cleanly."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("scan:\nsync:\n")
        monkeypatch.setenv("TREEMIRROR_WORKERS", "3")

        config = ConfigLoader(str(config_path)).load()

        assert config.scan.workers == 3
        assert config.sync.workers == 3
        assert config.sync.delete_removed is False

    def test_scalar_section_raises(self, tmp_path, monkeypatch):
        """Test that a section holding a scalar is a ConfigError."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("scan: 4\n")
        monkeypatch.setenv("TREEMIRROR_WORKERS", "3")

        with pytest.raises(ConfigError, match="must be a mapping"):
            ConfigLoader(str(config_path)).load()

    def test_dotenv_read_from_working_directory(self, tmp_path, monkeypatch):
        """Test that a .env file in the current directory is honoured."""
        (tmp_path / ".env").write_text("TREEMIRROR_VERIFY_AFTER_COPY=true\n")
        monkeypatch.chdir(tmp_path)

        try:
            config = ConfigLoader(str(tmp_path / "config.yaml")).load()
        finally:
            os.environ.pop("TREEMIRROR_VERIFY_AFTER_COPY", None)

        assert config.sync.verify_after_copy is True

    def test_saved_yaml_holds_plain_values(self, tmp_path):
        """Test that enum defaults are written as plain strings."""
        config_path = tmp_path / "config.yaml"
        loader = ConfigLoader(str(config_path))

        loader.save(MirrorConfig())

        data = yaml.safe_load(config_path.read_text())
        assert data["logging"]["log_level"] == "WARNING"
        assert data["scan"]["ignore_file_names"] == [".gitignore", ".ignore"]


class TestConfigSchema:
    """Test suite for configuration schema models."""

    def test_workers_must_be_positive(self):
        """Test that zero or negative worker counts are rejected."""
        with pytest.raises(ValueError):
            ScanConfig(workers=0)
        with pytest.raises(ValueError):
            SyncOptions(workers=-1)

    def test_ignore_file_names_must_be_bare(self):
        """Test that ignore file names cannot contain directories."""
        with pytest.raises(ValueError, match="bare file name"):
            ScanConfig(ignore_file_names=["sub/.gitignore"])

    def test_invalid_log_level(self):
        """Test that unknown log levels are rejected."""
        with pytest.raises(ValueError):
            MirrorConfig(logging={"log_level": "LOUD"})

    def test_defaults(self):
        """Test default values of the root model."""
        config = MirrorConfig()

        assert config.logging.log_level == "WARNING"
        assert config.logging.log_to_file is False
        assert config.scan.ignore_file_names == [".gitignore", ".ignore"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
